from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from coachbook.services.booking_store import BookingStore


@dataclass(frozen=True)
class CreditBalance:
    purchased: int
    used: int

    @property
    def remaining(self) -> int:
        # Can go negative if the ledger was already overdrawn; callers treat
        # anything <= 0 as "no credit available".
        return self.purchased - self.used

    @property
    def has_credit(self) -> bool:
        return self.used < self.purchased


class CreditLedger:
    def __init__(self, store: BookingStore) -> None:
        self.store = store

    async def balance(self, user_id: UUID) -> CreditBalance:
        purchased = await self.store.sum_purchased_credits(user_id)
        used = await self.store.count_active_bookings_for_user(user_id)
        return CreditBalance(purchased=purchased, used=used)

    async def remaining_credits(self, user_id: UUID) -> int:
        return (await self.balance(user_id)).remaining
