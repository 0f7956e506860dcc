"""
Artist wallet for a music submission platform

This module provides:
- Wallet summaries derived from approved song earnings, credits and withdrawals
- Withdrawal admission against the available balance and platform minimum
- Admin withdrawal processing and manual credits
- Platform-wide financial rollups
- A JSON-document record store for users, songs and settings
"""

from .models import (
    SongStatus,
    WithdrawalStatus,
    User,
    Song,
    Credit,
    Withdrawal,
    UnifiedTransaction,
    WalletSummary,
    PlatformFinancials,
    ActionResult,
)
from .service import WalletService
from .catalog import CatalogService
from .storage import RecordStore

__all__ = [
    "SongStatus",
    "WithdrawalStatus",
    "User",
    "Song",
    "Credit",
    "Withdrawal",
    "UnifiedTransaction",
    "WalletSummary",
    "PlatformFinancials",
    "ActionResult",
    "WalletService",
    "CatalogService",
    "RecordStore",
]
