"""Wallet balance and ledger operations."""

from decimal import Decimal
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from medix.core.exceptions import BadRequestException, InsufficientFundsException
from medix.models.wallets import wallet_transactions, wallets
from medix.schemas.wallets import WalletTransactionType

logger = structlog.get_logger(__name__)


class WalletService:
    """
    Service for wallets and their ledger.

    ``debit_wallet`` and ``credit_wallet`` never commit: the caller decides
    which unit of work the balance change belongs to.
    """

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def get_wallet_by_user_id(self, user_id: UUID) -> dict[str, Any] | None:
        """Get a user's wallet, active or not."""
        result = await self.db.execute(select(wallets).where(wallets.c.user_id == user_id))
        row = result.mappings().first()
        return dict(row) if row else None

    async def create_wallet(self, user_id: UUID, currency: str = "VND") -> dict[str, Any]:
        """
        Create the user's wallet, or return the existing one.

        Returns:
            Wallet record
        """
        existing = await self.get_wallet_by_user_id(user_id)
        if existing:
            return existing

        try:
            result = await self.db.execute(
                insert(wallets).values(user_id=user_id, currency=currency).returning(wallets)
            )
            wallet = dict(result.mappings().one())
            await self.db.commit()
        except IntegrityError:
            # Created concurrently by another request.
            await self.db.rollback()
            existing = await self.get_wallet_by_user_id(user_id)
            if existing is None:
                raise
            return existing

        logger.info("wallet_created", user_id=str(user_id), wallet_id=str(wallet["id"]))
        return wallet

    async def _append_ledger(
        self,
        wallet_id: UUID,
        amount: Decimal,
        balance_before: Decimal,
        balance_after: Decimal,
        transaction_type: WalletTransactionType,
        description: str | None,
        related_appointment_id: UUID | None,
    ) -> dict[str, Any]:
        result = await self.db.execute(
            insert(wallet_transactions)
            .values(
                wallet_id=wallet_id,
                amount=amount,
                balance_before=balance_before,
                balance_after=balance_after,
                transaction_type_code=transaction_type.value,
                description=description,
                related_appointment_id=related_appointment_id,
            )
            .returning(wallet_transactions)
        )
        return dict(result.mappings().one())

    async def debit_wallet(
        self,
        wallet_id: UUID,
        amount: Decimal,
        transaction_type: WalletTransactionType = WalletTransactionType.APPOINTMENT_PAYMENT,
        description: str | None = None,
        related_appointment_id: UUID | None = None,
    ) -> dict[str, Any]:
        """
        Take ``amount`` out of an active wallet and record a ledger entry.

        The balance check and the decrement are one conditional UPDATE, so two
        concurrent debits can never both pass on the same funds.

        Returns:
            The ledger entry, carrying ``balance_before`` and ``balance_after``

        Raises:
            InsufficientFundsException: If the wallet is inactive or short of funds
        """
        if amount <= 0:
            raise BadRequestException("Debit amount must be positive")

        result = await self.db.execute(
            update(wallets)
            .where(
                wallets.c.id == wallet_id,
                wallets.c.is_active.is_(True),
                wallets.c.balance >= amount,
            )
            .values(balance=wallets.c.balance - amount, updated_at=func.now())
            .returning(wallets.c.balance)
        )
        new_balance = result.scalar_one_or_none()
        if new_balance is None:
            logger.info("wallet_debit_rejected", wallet_id=str(wallet_id), amount=str(amount))
            raise InsufficientFundsException()

        new_balance = Decimal(str(new_balance))
        entry = await self._append_ledger(
            wallet_id,
            amount,
            new_balance + amount,
            new_balance,
            transaction_type,
            description,
            related_appointment_id,
        )
        logger.info(
            "wallet_debited",
            wallet_id=str(wallet_id),
            amount=str(amount),
            balance_after=str(new_balance),
        )
        return entry

    async def credit_wallet(
        self,
        wallet_id: UUID,
        amount: Decimal,
        transaction_type: WalletTransactionType = WalletTransactionType.APPOINTMENT_REFUND,
        description: str | None = None,
        related_appointment_id: UUID | None = None,
    ) -> dict[str, Any]:
        """
        Add ``amount`` to a wallet and record a ledger entry.

        Raises:
            BadRequestException: If the wallet does not exist
        """
        if amount <= 0:
            raise BadRequestException("Credit amount must be positive")

        result = await self.db.execute(
            update(wallets)
            .where(wallets.c.id == wallet_id)
            .values(balance=wallets.c.balance + amount, updated_at=func.now())
            .returning(wallets.c.balance)
        )
        new_balance = result.scalar_one_or_none()
        if new_balance is None:
            raise BadRequestException("Wallet not found")

        new_balance = Decimal(str(new_balance))
        entry = await self._append_ledger(
            wallet_id,
            amount,
            new_balance - amount,
            new_balance,
            transaction_type,
            description,
            related_appointment_id,
        )
        logger.info(
            "wallet_credited",
            wallet_id=str(wallet_id),
            amount=str(amount),
            balance_after=str(new_balance),
        )
        return entry

    async def list_transactions(
        self,
        wallet_id: UUID,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[dict[str, Any]], int]:
        """
        List ledger entries, newest first.

        Returns:
            Tuple of (entries, total count)
        """
        total_result = await self.db.execute(
            select(func.count())
            .select_from(wallet_transactions)
            .where(wallet_transactions.c.wallet_id == wallet_id)
        )
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(wallet_transactions)
            .where(wallet_transactions.c.wallet_id == wallet_id)
            .order_by(wallet_transactions.c.created_at.desc(), wallet_transactions.c.id)
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        return [dict(row) for row in result.mappings().all()], total
