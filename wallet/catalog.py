"""User, song and settings records that feed the wallet."""
import calendar
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from .errors import (
    WalletServiceError,
    ValidationError,
    UserNotFoundError,
    NotFoundError,
)
from .models import (
    AccountType,
    ActionResult,
    AppSettings,
    PaidSongSubmission,
    Song,
    SongStatus,
    SongSubmission,
    User,
    UserRole,
)
from .service import DEFAULT_PAYOUT_RATE, failure, first_validation_error, require_admin
from .storage import RecordStore

logger = logging.getLogger(__name__)


def add_months(start: datetime, months: int) -> datetime:
    """Shift by whole calendar months, clamping to the last day of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def describe_duration(months: int) -> str:
    if months == 1:
        return "1 month"
    if months == 12:
        return "1 year"
    return f"{months} months"


class CatalogService:
    def __init__(self, store: Optional[RecordStore] = None):
        self.store = store or RecordStore()

    # Users

    def register_user(self, name: str, email: str) -> ActionResult:
        try:
            name = (name or "").strip()
            email = (email or "").strip()
            if not name:
                raise ValidationError("Name is required", field="name")
            if "@" not in email or "." not in email.rpartition("@")[2]:
                raise ValidationError("Invalid email address", field="email")
            if self.store.find_user_by_email(email):
                raise ValidationError("An account with this email already exists.", field="email")

            user = User(
                id=f"user-{uuid4().hex}",
                name=name,
                email=email,
                avatar=f"https://i.pravatar.cc/150?u={email}",
                role=UserRole.USER,
                account_type=AccountType.NORMAL_ARTIST,
                payout_rate=DEFAULT_PAYOUT_RATE,
            )
            self.store.users.append(user)
            self._persist(lambda: self.store.users.remove(user))
        except WalletServiceError as e:
            return failure(e)

        logger.info(f"Registered user {user.id} ({email})")
        return ActionResult(success=True, message="Account created.", record_id=user.id)

    def get_user(self, user_id: str) -> User:
        user = self.store.find_user(user_id)
        if not user:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    def list_users(self) -> list[User]:
        return list(self.store.users)

    def update_user_role(self, user_id: str, role: Any, admin_id: str) -> ActionResult:
        return self._update_user(
            user_id, admin_id, "role", role, UserRole,
            lambda r: f"User role updated to {r.value}.",
        )

    def update_user_account_type(self, user_id: str, account_type: Any, admin_id: str) -> ActionResult:
        return self._update_user(
            user_id, admin_id, "account_type", account_type, AccountType,
            lambda t: f"User account type updated to {t.value}.",
        )

    def update_payout_rate(self, user_id: str, percent: Any, admin_id: str) -> ActionResult:
        try:
            require_admin(self.store, admin_id)
            user = self.get_user(user_id)
            try:
                rate = Decimal(str(percent))
            except InvalidOperation:
                raise ValidationError("Payout rate must be a number.", field="rate")
            if not rate.is_finite() or rate < 0 or rate > 100:
                raise ValidationError("Payout rate must be between 0 and 100.", field="rate")

            previous = user.payout_rate
            user.payout_rate = rate / 100
            self._persist(lambda: setattr(user, "payout_rate", previous))
        except WalletServiceError as e:
            return failure(e)

        logger.info(f"Payout rate for {user_id} set to {user.payout_rate} by {admin_id}")
        return ActionResult(success=True, message="Payout rate updated.", record_id=user_id)

    def grant_subscription(self, user_id: str, months: int, admin_id: str) -> ActionResult:
        try:
            require_admin(self.store, admin_id)
            user = self.get_user(user_id)
            if not isinstance(months, int) or months <= 0:
                raise ValidationError("Months must be a positive whole number.", field="months")

            now = datetime.now(timezone.utc)
            current = user.subscription_expiry
            start = current if current and current > now else now

            user.subscription_expiry = add_months(start, months)
            self._persist(lambda: setattr(user, "subscription_expiry", current))
        except WalletServiceError as e:
            return failure(e)

        return ActionResult(
            success=True,
            message=f"Granted {describe_duration(months)} of subscription.",
            record_id=user_id,
        )

    def revoke_subscription(self, user_id: str, admin_id: str) -> ActionResult:
        try:
            require_admin(self.store, admin_id)
            user = self.get_user(user_id)
            current = user.subscription_expiry
            user.subscription_expiry = None
            self._persist(lambda: setattr(user, "subscription_expiry", current))
        except WalletServiceError as e:
            return failure(e)

        return ActionResult(success=True, message="Subscription has been revoked.", record_id=user_id)

    # Songs

    def submit_song(self, user_id: str, submission: Any) -> ActionResult:
        try:
            self.get_user(user_id)
            song = self._new_song(user_id, self._parse(SongSubmission, submission))
            self.store.songs.insert(0, song)
            self._persist(lambda: self.store.songs.remove(song))
        except WalletServiceError as e:
            return failure(e)

        logger.info(f"Song {song.id} submitted by {user_id}")
        return ActionResult(success=True, message="Song submitted for approval!", record_id=song.id)

    def submit_paid_song(self, user_id: str, submission: Any) -> ActionResult:
        """Switch the account type, start a one-year subscription and submit the song."""
        try:
            user = self.get_user(user_id)
            parsed = self._parse(PaidSongSubmission, submission)
            previous = (user.account_type, user.subscription_expiry)

            user.account_type = parsed.account_type
            user.subscription_expiry = add_months(datetime.now(timezone.utc), 12)
            song = self._new_song(user_id, parsed)
            self.store.songs.insert(0, song)

            def rollback():
                self.store.songs.remove(song)
                user.account_type, user.subscription_expiry = previous

            self._persist(rollback)
        except WalletServiceError as e:
            return failure(e)

        logger.info(f"Paid submission {song.id} by {user_id} ({parsed.account_type.value})")
        return ActionResult(success=True, message="Payment successful and song submitted!", record_id=song.id)

    def approve_song(self, song_id: str, admin_id: str) -> ActionResult:
        return self._review_song(song_id, admin_id, SongStatus.APPROVED, "Song approved.")

    def decline_song(self, song_id: str, admin_id: str) -> ActionResult:
        return self._review_song(song_id, admin_id, SongStatus.DECLINED, "Song declined.")

    def update_song_earnings(self, song_id: str, earnings: Any, admin_id: str) -> ActionResult:
        try:
            require_admin(self.store, admin_id)
            song = self._get_song(song_id)
            try:
                amount = Decimal(str(earnings))
            except InvalidOperation:
                raise ValidationError("Earnings must be a number.", field="earnings")
            if not amount.is_finite() or amount < 0:
                raise ValidationError("Earnings must be a positive number.", field="earnings")

            previous = song.total_earnings
            song.total_earnings = amount
            self._persist(lambda: setattr(song, "total_earnings", previous))
        except WalletServiceError as e:
            return failure(e)

        logger.info(f"Earnings for song {song_id} set to {amount} by {admin_id}")
        return ActionResult(success=True, message="Song earnings updated.", record_id=song_id)

    def songs_for_user(self, user_id: str) -> list[Song]:
        return [s for s in self.store.songs if s.user_id == user_id]

    def pending_songs(self) -> list[Song]:
        return [s for s in self.store.songs if s.status == SongStatus.WAITING]

    def approved_songs(self) -> list[Song]:
        return [s for s in self.store.songs if s.status == SongStatus.APPROVED]

    # Settings

    def get_settings(self) -> AppSettings:
        return self.store.settings

    def update_prices(self, prices: Any, admin_id: str) -> ActionResult:
        try:
            require_admin(self.store, admin_id)
            try:
                updated = AppSettings(prices=prices)
            except PydanticValidationError as e:
                raise first_validation_error(e)
            if any(price < 0 for price in updated.prices.values()):
                raise ValidationError("Prices cannot be negative.", field="prices")

            previous = self.store.settings.prices
            self.store.settings.prices = {**previous, **updated.prices}
            self._persist(lambda: setattr(self.store.settings, "prices", previous))
        except WalletServiceError as e:
            return failure(e)

        return ActionResult(success=True, message="Price settings updated successfully.")

    def subscription_price(self, user_id: str) -> Decimal:
        user = self.get_user(user_id)
        return self.store.settings.prices[user.account_type]

    def _update_user(self, user_id, admin_id, attr, value, enum_cls, describe) -> ActionResult:
        try:
            require_admin(self.store, admin_id)
            user = self.get_user(user_id)
            try:
                new_value = enum_cls(value)
            except ValueError:
                raise ValidationError(f"Unknown {attr.replace('_', ' ')}: {value}", field=attr)

            previous = getattr(user, attr)
            setattr(user, attr, new_value)
            self._persist(lambda: setattr(user, attr, previous))
        except WalletServiceError as e:
            return failure(e)

        return ActionResult(success=True, message=describe(new_value), record_id=user_id)

    def _review_song(self, song_id: str, admin_id: str, status: SongStatus, message: str) -> ActionResult:
        try:
            require_admin(self.store, admin_id)
            song = self._get_song(song_id)
            previous = (song.status, song.actioned_by, song.actioned_at)

            song.status = status
            song.actioned_by = admin_id
            song.actioned_at = datetime.now(timezone.utc)

            def rollback():
                song.status, song.actioned_by, song.actioned_at = previous

            self._persist(rollback)
        except WalletServiceError as e:
            return failure(e)

        logger.info(f"Song {song_id} {status.value.lower()} by {admin_id}")
        return ActionResult(success=True, message=message, record_id=song_id)

    def _get_song(self, song_id: str) -> Song:
        song = self.store.find_song(song_id)
        if not song:
            raise NotFoundError("Song not found.")
        return song

    def _parse(self, model, data):
        if isinstance(data, model):
            return data
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            raise first_validation_error(e)

    def _new_song(self, user_id: str, submission: SongSubmission) -> Song:
        return Song(
            id=f"song-{uuid4().hex}",
            user_id=user_id,
            title=submission.title,
            author=submission.author,
            singer=submission.singer,
            description=submission.description,
            tags=submission.tags,
            status=SongStatus.WAITING,
            submitted_at=datetime.now(timezone.utc),
            cover_art=submission.banner_url,
            audio_url=submission.audio_url,
            banner_url=submission.banner_url,
            total_earnings=Decimal("0"),
        )

    def _persist(self, rollback: Callable[[], None]) -> None:
        try:
            self.store.persist()
        except WalletServiceError:
            rollback()
            raise
