"""JSON-document record store for users, songs, withdrawals, credits and settings.

The whole document is held in memory and rewritten in full after every
mutation. Passing ``path=None`` keeps everything in memory, which is what
the tests use.
"""
import logging
import os
import threading
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .errors import PersistenceError
from .models import (
    AccountType,
    AppSettings,
    Credit,
    Database,
    Song,
    SongStatus,
    User,
    UserRole,
    Withdrawal,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_AUDIO = "https://storage.googleapis.com/studioprototype.appspot.com/assets/placeholder-audio.mp3"


def seed_database() -> Database:
    return Database(
        users=[
            User(
                id="user-1", name="Admin User", email="admin@gmail.com",
                avatar="https://i.pravatar.cc/150?u=admin@gmail.com",
                role=UserRole.SUPER_ADMIN, account_type=AccountType.LABEL,
                subscription_expiry=datetime(2099, 1, 1, tzinfo=timezone.utc),
                payout_rate=Decimal("0.8"),
            ),
            User(
                id="user-2", name="Melody Maker", email="melody@example.com",
                avatar="https://i.pravatar.cc/150?u=melody@example.com",
                role=UserRole.USER, account_type=AccountType.NORMAL_ARTIST,
                payout_rate=Decimal("0.8"),
            ),
        ],
        songs=[
            Song(
                id="1", user_id="user-2", title="Echoes of Tomorrow",
                author="Alex Ray", singer="Luna",
                description="A futuristic synthwave track with driving basslines and ethereal melodies.",
                tags=["synthwave", "electronic", "80s"],
                status=SongStatus.APPROVED,
                submitted_at=datetime(2023, 10, 26, tzinfo=timezone.utc),
                cover_art="https://placehold.co/600x600.png",
                audio_url=PLACEHOLDER_AUDIO,
                banner_url="https://placehold.co/3000x3000.png",
                actioned_by="user-1",
                actioned_at=datetime(2023, 10, 27, tzinfo=timezone.utc),
                total_earnings=Decimal("1250"),
            ),
        ],
        settings=AppSettings(),
    )


class RecordStore:
    def __init__(self, path: Optional[Union[str, Path]] = None, seed: bool = True):
        self.path = Path(path) if path else None
        self.seed = seed
        self._write_lock = threading.Lock()
        self.data = self._load()

    @property
    def users(self) -> list[User]:
        return self.data.users

    @property
    def songs(self) -> list[Song]:
        return self.data.songs

    @property
    def withdrawals(self) -> list[Withdrawal]:
        return self.data.withdrawals

    @property
    def credits(self) -> list[Credit]:
        return self.data.credits

    @property
    def settings(self) -> AppSettings:
        return self.data.settings

    def find_user(self, user_id: str) -> Optional[User]:
        return next((u for u in self.data.users if u.id == user_id), None)

    def find_user_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.data.users if u.email == email), None)

    def find_song(self, song_id: str) -> Optional[Song]:
        return next((s for s in self.data.songs if s.id == song_id), None)

    def find_withdrawal(self, withdrawal_id: str) -> Optional[Withdrawal]:
        return next((w for w in self.data.withdrawals if w.id == withdrawal_id), None)

    def persist(self) -> None:
        if self.path is None:
            return
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        # snapshot and write together so an older snapshot never lands last
        with self._write_lock:
            payload = self.data.model_dump_json(indent=2)
            try:
                tmp_path.write_text(payload, encoding="utf-8")
                os.replace(tmp_path, self.path)
            except OSError as e:
                logger.error(f"Failed to write record store {self.path}: {e}")
                raise PersistenceError("Failed to save changes.") from e

    def _load(self) -> Database:
        if self.path is None:
            return seed_database() if self.seed else Database()

        if self.path.exists():
            try:
                raw = self.path.read_text(encoding="utf-8")
                if raw.strip():
                    return Database.model_validate_json(raw)
            except (OSError, PydanticValidationError) as e:
                logger.error(f"Error reading {self.path}, falling back to initial data: {e}")

        self.data = seed_database() if self.seed else Database()
        logger.info(f"Initialising record store at {self.path}")
        try:
            self.persist()
        except PersistenceError:
            logger.warning("Continuing with an unsaved in-memory record store")
        return self.data
