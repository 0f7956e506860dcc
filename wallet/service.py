import logging
import threading
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from .errors import (
    WalletServiceError,
    ValidationError,
    UserNotFoundError,
    NotFoundError,
    InsufficientBalanceError,
    BelowMinimumError,
    PermissionDeniedError,
    InvalidStateTransitionError,
)
from .models import (
    ActionResult,
    Credit,
    CreditTransaction,
    PlatformFinancials,
    SongStatus,
    User,
    WalletSummary,
    Withdrawal,
    WithdrawalRequest,
    WithdrawalStatus,
    WithdrawalTransaction,
)
from .storage import RecordStore

logger = logging.getLogger(__name__)

MIN_WITHDRAWAL_AMOUNT = Decimal("500")
DEFAULT_PAYOUT_RATE = Decimal("0.8")
UNKNOWN_ADMIN_NAME = "An Admin"
ZERO = Decimal("0")


def failure(error: WalletServiceError) -> ActionResult:
    return ActionResult(
        success=False,
        error=error.message,
        error_code=error.code,
        field=error.field,
    )


def require_admin(store: RecordStore, admin_id: str) -> User:
    admin = store.find_user(admin_id)
    if not admin or not admin.is_admin():
        raise PermissionDeniedError("Only administrators can perform this action.")
    return admin


def first_validation_error(exc: PydanticValidationError) -> ValidationError:
    error = exc.errors()[0]
    field = str(error["loc"][0]) if error.get("loc") else None
    return ValidationError(f"{field}: {error['msg']}" if field else error["msg"], field=field)


class WalletService:
    def __init__(
        self,
        store: Optional[RecordStore] = None,
        min_withdrawal: Decimal = MIN_WITHDRAWAL_AMOUNT,
        default_payout_rate: Decimal = DEFAULT_PAYOUT_RATE,
    ):
        self.store = store or RecordStore()
        self.min_withdrawal = Decimal(str(min_withdrawal))
        self.default_payout_rate = Decimal(str(default_payout_rate))
        self._user_locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    def get_wallet_summary(self, user_id: str) -> WalletSummary:
        """
        Derive the user's balance and transaction feed from the stored records.

        Only Approved songs count towards earnings. Nothing is cached; every
        call rescans the collections.
        """
        user = self.store.find_user(user_id)
        if not user:
            raise UserNotFoundError(f"User {user_id} not found")

        songs = [s for s in self.store.songs if s.user_id == user_id and s.status == SongStatus.APPROVED]
        withdrawals = [w for w in self.store.withdrawals if w.user_id == user_id]
        credits = [c for c in self.store.credits if c.user_id == user_id]

        song_earnings = sum(((s.total_earnings or ZERO) * user.payout_rate for s in songs), ZERO)
        total_credits = sum((c.amount for c in credits), ZERO)
        total_earnings = song_earnings + total_credits

        total_withdrawn = sum(
            (w.amount for w in withdrawals if w.status == WithdrawalStatus.COMPLETED), ZERO
        )
        pending_withdrawals = sum(
            (w.amount for w in withdrawals if w.status == WithdrawalStatus.PENDING), ZERO
        )
        available_balance = total_earnings - total_withdrawn - pending_withdrawals

        return WalletSummary(
            user_id=user_id,
            song_earnings=song_earnings,
            total_credits=total_credits,
            total_earnings=total_earnings,
            total_withdrawn=total_withdrawn,
            pending_withdrawals=pending_withdrawals,
            available_balance=available_balance,
            transactions=self._transaction_feed(withdrawals, credits),
        )

    def request_withdrawal(self, user_id: str, amount: Any, upi_id: str, upi_name: str) -> ActionResult:
        try:
            withdrawal = self._admit_withdrawal(user_id, amount, upi_id, upi_name)
        except WalletServiceError as e:
            logger.info(f"Withdrawal request from {user_id} rejected: {e.code} ({e.message})")
            return failure(e)

        logger.info(f"Withdrawal {withdrawal.id} of {withdrawal.amount} requested by {user_id}")
        return ActionResult(
            success=True,
            message="Withdrawal request submitted successfully!",
            record_id=withdrawal.id,
        )

    def process_withdrawal(self, withdrawal_id: str, admin_id: str, status: Any) -> ActionResult:
        try:
            require_admin(self.store, admin_id)
            try:
                new_status = WithdrawalStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown withdrawal status: {status}", field="status")
            if new_status == WithdrawalStatus.PENDING:
                raise ValidationError("A withdrawal can only be marked Completed or Failed.", field="status")

            withdrawal = self.store.find_withdrawal(withdrawal_id)
            if not withdrawal:
                raise NotFoundError("Withdrawal request not found.")
            with self._lock_for(withdrawal.user_id):
                if not withdrawal.can_process():
                    raise InvalidStateTransitionError(
                        f"Cannot mark withdrawal {withdrawal_id} {new_status.value}: "
                        f"it is already {withdrawal.status.value}."
                    )

                previous = (withdrawal.status, withdrawal.processed_at, withdrawal.processed_by)
                withdrawal.status = new_status
                withdrawal.processed_at = datetime.now(timezone.utc)
                withdrawal.processed_by = admin_id
                try:
                    self.store.persist()
                except WalletServiceError:
                    withdrawal.status, withdrawal.processed_at, withdrawal.processed_by = previous
                    raise
        except WalletServiceError as e:
            return failure(e)

        logger.info(f"Withdrawal {withdrawal_id} marked {new_status.value} by {admin_id}")
        return ActionResult(
            success=True,
            message=f"Withdrawal status updated to {new_status.value}.",
            record_id=withdrawal_id,
        )

    def add_credit(self, user_id: str, admin_id: str, amount: Any, note: str = "") -> ActionResult:
        try:
            require_admin(self.store, admin_id)
            user = self.store.find_user(user_id)
            if not user:
                raise UserNotFoundError("User not found.")
            try:
                credit = Credit(
                    id=f"credit-{uuid4().hex}",
                    user_id=user_id,
                    admin_id=admin_id,
                    amount=amount,
                    note=note,
                    created_at=datetime.now(timezone.utc),
                )
            except PydanticValidationError:
                raise ValidationError("Credit amount must be positive.", field="amount")

            self.store.credits.insert(0, credit)
            try:
                self.store.persist()
            except WalletServiceError:
                self.store.credits.remove(credit)
                raise
        except WalletServiceError as e:
            return failure(e)

        logger.info(f"Credit {credit.id} of {credit.amount} granted to {user_id} by {admin_id}")
        return ActionResult(
            success=True,
            message=f"Successfully credited ₹{credit.amount} to {user.name}.",
            record_id=credit.id,
        )

    def list_withdrawals(self) -> list[Withdrawal]:
        return sorted(self.store.withdrawals, key=lambda w: w.requested_at, reverse=True)

    def get_platform_financials(self) -> PlatformFinancials:
        """
        Platform-wide rollup over every song regardless of status.

        Unlike the per-user summary, non-approved songs are included here.
        Songs whose owner is missing fall back to the default payout rate.
        """
        rates = {u.id: u.payout_rate for u in self.store.users}

        total_song_gross_earnings = ZERO
        platform_cut = ZERO
        total_user_side_earnings = ZERO
        for song in self.store.songs:
            earning = song.total_earnings or ZERO
            rate = rates.get(song.user_id, self.default_payout_rate)
            total_song_gross_earnings += earning
            platform_cut += earning * (1 - rate)
            total_user_side_earnings += earning * rate

        total_paid_out = sum(
            (w.amount for w in self.store.withdrawals if w.status == WithdrawalStatus.COMPLETED), ZERO
        )
        total_credits = sum((c.amount for c in self.store.credits), ZERO)

        return PlatformFinancials(
            total_song_gross_earnings=total_song_gross_earnings,
            total_paid_out=total_paid_out,
            platform_cut=platform_cut,
            total_user_side_earnings=total_user_side_earnings,
            total_credits=total_credits,
            total_remaining_to_pay=(total_user_side_earnings + total_credits) - total_paid_out,
        )

    def _admit_withdrawal(self, user_id: str, amount: Any, upi_id: str, upi_name: str) -> Withdrawal:
        try:
            request = WithdrawalRequest(user_id=user_id, amount=amount, upi_id=upi_id, upi_name=upi_name)
        except PydanticValidationError as e:
            raise first_validation_error(e)
        if not self.store.find_user(request.user_id):
            raise UserNotFoundError(f"User {request.user_id} not found")

        # balance check and append must not interleave for the same user
        with self._lock_for(request.user_id):
            summary = self.get_wallet_summary(request.user_id)
            if request.amount > summary.available_balance:
                raise InsufficientBalanceError("Insufficient balance.", field="amount")
            if request.amount < self.min_withdrawal:
                raise BelowMinimumError(
                    f"Minimum withdrawal amount is ₹{self.min_withdrawal}.", field="amount"
                )

            withdrawal = Withdrawal(
                id=f"wd-{uuid4().hex}",
                user_id=request.user_id,
                amount=request.amount,
                upi_id=request.upi_id,
                upi_name=request.upi_name,
                status=WithdrawalStatus.PENDING,
                requested_at=datetime.now(timezone.utc),
            )
            self.store.withdrawals.append(withdrawal)
            try:
                self.store.persist()
            except WalletServiceError:
                self.store.withdrawals.remove(withdrawal)
                raise
        return withdrawal

    def _transaction_feed(self, withdrawals: list[Withdrawal], credits: list[Credit]) -> list:
        names = {u.id: u.name for u in self.store.users}

        def admin_name(admin_id: str) -> str:
            return names.get(admin_id) or UNKNOWN_ADMIN_NAME

        feed = [
            WithdrawalTransaction(
                **w.model_dump(),
                admin_name=admin_name(w.processed_by) if w.processed_by else None,
            )
            for w in withdrawals
        ] + [
            CreditTransaction(**c.model_dump(), admin_name=admin_name(c.admin_id))
            for c in credits
        ]
        # stable sort: equal timestamps keep withdrawals-then-credits order
        feed.sort(key=lambda t: t.requested_at if t.type == "withdrawal" else t.created_at, reverse=True)
        return feed

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._user_locks[user_id]
