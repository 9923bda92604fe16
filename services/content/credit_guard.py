# services/content/credit_guard.py
"""
Credit-safe execution of a paid operation.

The guard reads the balance as an advisory check, deducts atomically with a
fresh reference, runs the operation and issues a compensating credit if it
fails. It holds no locks: the atomic deduct is what prevents double-spend
when concurrent requests both pass the advisory check. A failed refund is
logged and never masks the original error.
"""

import logging
import uuid
from typing import Awaitable, Callable, Protocol, TypeVar

from shared.credits import BALANCE_COLUMNS, CreditType
from shared.database import Database
from shared.errors import InsufficientCreditsError

logger = logging.getLogger(__name__)

T = TypeVar("T")

COST_PER_GENERATION = 1


class CreditStore(Protocol):
    async def get_balance(self, user_id: str, credit_type: CreditType) -> int:
        ...

    async def deduct(self, user_id: str, credit_type: CreditType, amount: int, ref_id: str) -> bool:
        ...

    async def refund(self, user_id: str, credit_type: CreditType, amount: int, ref_id: str) -> None:
        ...


class PostgresCreditStore:
    """Credit balances on the profiles table, mutated only through deduct_credits()"""

    def __init__(self, db: Database):
        self.db = db

    async def get_balance(self, user_id: str, credit_type: CreditType) -> int:
        column = BALANCE_COLUMNS[credit_type]
        balance = await self.db.fetch_val(f"SELECT {column} FROM profiles WHERE id = $1", user_id)
        return balance or 0

    async def deduct(self, user_id: str, credit_type: CreditType, amount: int, ref_id: str) -> bool:
        result = await self.db.fetch_val(
            "SELECT deduct_credits($1, $2, $3, $4)", user_id, amount, ref_id, credit_type.value
        )
        return bool(result)

    async def refund(self, user_id: str, credit_type: CreditType, amount: int, ref_id: str) -> None:
        # A negative deduction is a compensating credit
        await self.db.fetch_val(
            "SELECT deduct_credits($1, $2, $3, $4)", user_id, -amount, ref_id, credit_type.value
        )


class CreditGuard:
    def __init__(self, store: CreditStore, cost: int = COST_PER_GENERATION):
        self.store = store
        self.cost = cost

    async def run(
        self, user_id: str, credit_type: CreditType, operation: Callable[[], Awaitable[T]]
    ) -> T:
        balance = await self.store.get_balance(user_id, credit_type)
        if balance < self.cost:
            logger.info(f"💳 CREDITS: User {user_id} has {balance} {credit_type.value} credits, needs {self.cost}")
            raise InsufficientCreditsError()

        ref_id = f"gen_{uuid.uuid4().hex}"
        if not await self.store.deduct(user_id, credit_type, self.cost, ref_id):
            # Lost a race with a concurrent request after the advisory check passed
            logger.info(f"💳 CREDITS: Atomic deduct failed for user {user_id} ({ref_id})")
            raise InsufficientCreditsError()

        logger.info(f"💳 CREDITS: Deducted {self.cost} {credit_type.value} credit(s) from {user_id} ({ref_id})")

        try:
            return await operation()
        except BaseException:
            await self._refund(user_id, credit_type, ref_id)
            raise

    async def _refund(self, user_id: str, credit_type: CreditType, ref_id: str) -> None:
        refund_ref = f"refund_{ref_id}"
        try:
            await self.store.refund(user_id, credit_type, self.cost, refund_ref)
            logger.info(f"↩️ CREDITS: Refunded {self.cost} {credit_type.value} credit(s) to {user_id} ({refund_ref})")
        except Exception as e:
            logger.error(f"❌ CREDITS: Refund {refund_ref} for user {user_id} failed: {e}")
