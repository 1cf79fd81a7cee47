"""
Rider registry

Registered riders live in the `riders` collection keyed by WhatsApp address.
Membership decides whether inbound messages go to the rider command bot.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, List, Optional

from roho.core.firebase import Collections, utcnow
from roho.core.security import mask_phone
from roho.schemas.rider import Rider, RiderCreate
from roho.services.chatbot.sessions import SessionStore

logger = logging.getLogger(__name__)


class RiderAlreadyRegistered(Exception):
    def __init__(self, phone: str):
        super().__init__(f"Rider {mask_phone(phone)} is already registered")
        self.phone = phone


class RiderStore(ABC):

    @abstractmethod
    async def create(self, rider: Rider) -> bool:
        """Insert a rider; False if the phone is already registered"""

    @abstractmethod
    async def get(self, phone: str) -> Optional[Rider]:
        ...

    @abstractmethod
    async def list_all(self) -> List[Rider]:
        ...


class FirestoreRiderStore(RiderStore):

    def __init__(self, db) -> None:
        self.db = db

    async def create(self, rider: Rider) -> bool:
        def _work():
            ref = self.db.collection(Collections.RIDERS).document(rider.phone)
            if ref.get().exists:
                return False
            ref.set(rider.to_document())
            return True
        return await asyncio.to_thread(_work)

    async def get(self, phone: str) -> Optional[Rider]:
        def _work():
            doc = self.db.collection(Collections.RIDERS).document(phone).get()
            return Rider.from_document(doc.to_dict()) if doc.exists else None
        return await asyncio.to_thread(_work)

    async def list_all(self) -> List[Rider]:
        def _work():
            docs = self.db.collection(Collections.RIDERS).stream()
            riders = [Rider.from_document(doc.to_dict()) for doc in docs]
            riders.sort(key=lambda r: r.created_at)
            return riders
        return await asyncio.to_thread(_work)


class RiderRegistry:
    """Admin-facing rider operations"""

    def __init__(
        self,
        riders: RiderStore,
        sessions: SessionStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.riders = riders
        self.sessions = sessions
        self._clock = clock

    async def register(self, request: RiderCreate) -> Rider:
        """
        Register a rider with zeroed counters.

        Raises:
            RiderAlreadyRegistered: phone already in the registry
        """
        rider = Rider(phone=request.phone, name=request.name, created_at=self._clock())
        if not await self.riders.create(rider):
            raise RiderAlreadyRegistered(request.phone)

        # Role is write-once; an existing buyer keeps theirs
        await self.sessions.set_role(request.phone, "rider")
        logger.info(f"✅ Registered rider {rider.name} ({mask_phone(rider.phone)})")
        return rider

    async def is_registered(self, phone: str) -> bool:
        rider = await self.riders.get(phone)
        return rider is not None and rider.status == "active"

    async def list_riders(self) -> List[Rider]:
        return await self.riders.list_all()
