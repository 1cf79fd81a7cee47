"""
Conversation session storage

One `users` document per WhatsApp sender holds the conversation step, the
free-form session payload and the (write-once) role.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from google.cloud import firestore

from roho.core.firebase import Collections, utcnow
from roho.core.security import mask_phone
from roho.schemas.messages import UserAccount

logger = logging.getLogger(__name__)

STEP_WELCOME = "WELCOME"


def new_account(user_id: str, now: datetime) -> UserAccount:
    return UserAccount(
        user_id=user_id,
        step=STEP_WELCOME,
        created_at=now,
        last_interaction=now,
    )


class SessionStore(ABC):
    """Per-user conversation state"""

    @abstractmethod
    async def get_or_create(self, user_id: str) -> UserAccount:
        """Load the account, creating it on first contact"""

    @abstractmethod
    async def save(self, user_id: str, step: str, data: Dict[str, Any]) -> None:
        """Replace step and session payload, touching last_interaction"""

    @abstractmethod
    async def set_role(self, user_id: str, role: str) -> bool:
        """
        Set the role only if none is set yet.

        Returns:
            True if this call set the role
        """

    @abstractmethod
    async def get(self, user_id: str) -> Optional[UserAccount]:
        ...


def set_role_in_transaction(transaction, db, user_id: str, role: str, now: datetime) -> bool:
    ref = db.collection(Collections.USERS).document(user_id)
    snap = ref.get(transaction=transaction)
    if snap.exists:
        if (snap.to_dict() or {}).get("role"):
            return False
        transaction.update(ref, {"role": role})
        return True

    account = new_account(user_id, now).model_copy(update={"role": role})
    transaction.set(ref, account.to_document())
    return True


class FirestoreSessionStore(SessionStore):
    """Session store backed by the `users` collection"""

    def __init__(self, db, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self._clock = clock

    async def get(self, user_id: str) -> Optional[UserAccount]:
        def _work():
            doc = self.db.collection(Collections.USERS).document(user_id).get()
            return UserAccount.from_document(doc.to_dict()) if doc.exists else None
        return await asyncio.to_thread(_work)

    async def get_or_create(self, user_id: str) -> UserAccount:
        account = await self.get(user_id)
        if account:
            return account

        account = new_account(user_id, self._clock())

        def _work():
            self.db.collection(Collections.USERS).document(user_id).set(account.to_document())
        await asyncio.to_thread(_work)

        logger.info(f"👋 New account for {mask_phone(user_id)}")
        return account

    async def save(self, user_id: str, step: str, data: Dict[str, Any]) -> None:
        now = self._clock()

        def _work():
            self.db.collection(Collections.USERS).document(user_id).set({
                "step": step,
                "data": data,
                "last_interaction": now,
            }, merge=["step", "data", "last_interaction"])
        await asyncio.to_thread(_work)

    async def set_role(self, user_id: str, role: str) -> bool:
        now = self._clock()

        def _work():
            return firestore.transactional(set_role_in_transaction)(
                self.db.transaction(), self.db, user_id, role, now
            )
        changed = await asyncio.to_thread(_work)
        if changed:
            logger.info(f"Role for {mask_phone(user_id)} set to {role}")
        return changed
