"""Today's meals and accepted promo codes"""
from dataclasses import dataclass
from typing import Dict, Optional

from roho.services.delivery.earnings import to_minor


@dataclass(frozen=True)
class Meal:
    meal_id: str
    name: str
    description: str
    price_minor: int


MEALS = (
    Meal("meal_beef_mukimo", "Beef & Mukimo", "Nyama choma, soft maize. Protein + carbs.", to_minor(320)),
    Meal("meal_chicken", "Kienyeji Chicken", "Free-range chicken, kales, ugali. Pure fuel.", to_minor(320)),
    Meal("meal_vegan", "Vegan Bowl", "Beans, greens, avocado, whole grains. Balance.", to_minor(320)),
)

# Menu number ("1".."3") or meal id
_MEAL_LOOKUP: Dict[str, Meal] = {}
for _idx, _meal in enumerate(MEALS, start=1):
    _MEAL_LOOKUP[str(_idx)] = _meal
    _MEAL_LOOKUP[_meal.meal_id] = _meal

PROMO_CODES = {"britam_grp", "roho_free", "nairobitech"}


def find_meal(choice: str) -> Optional[Meal]:
    return _MEAL_LOOKUP.get(choice.strip().lower())


def is_promo_code(text: str) -> bool:
    return text.strip().lower() in PROMO_CODES
