"""Tests for the platform-wide financial rollup."""

from decimal import Decimal

import pytest

from wallet.models import SongStatus, WithdrawalStatus
from wallet.service import WalletService
from wallet.storage import RecordStore

from factories import make_credit, make_song, make_user, make_withdrawal


@pytest.fixture
def platform():
    store = RecordStore(seed=False)
    store.users.extend([
        make_user("a", rate="0.8"),
        make_user("b", rate="0.5"),
    ])
    store.songs.extend([
        make_song("s1", "a", 1000),
        make_song("s2", "b", 200, status=SongStatus.WAITING),
        make_song("s3", "ghost", 100, status=SongStatus.DECLINED),
        make_song("s4", "a", None),
    ])
    store.withdrawals.extend([
        make_withdrawal("w1", "a", 500, status=WithdrawalStatus.COMPLETED),
        make_withdrawal("w2", "a", 200, status=WithdrawalStatus.PENDING),
        make_withdrawal("w3", "b", 50, status=WithdrawalStatus.FAILED),
    ])
    store.credits.extend([make_credit("c1", "b", 40), make_credit("c2", "a", 10)])
    return WalletService(store)


class TestPlatformFinancials:
    """Tests for admin rollups."""

    def test_gross_counts_every_song_regardless_of_status(self, platform):
        """Waiting and declined songs are part of the platform gross."""
        financials = platform.get_platform_financials()

        assert financials.total_song_gross_earnings == Decimal("1300")

    def test_platform_cut_and_user_side(self, platform):
        """Each song splits by its owner's rate; unknown owners use 0.8."""
        financials = platform.get_platform_financials()

        # s1: 800 / 200, s2: 100 / 100, s3 (no owner): 80 / 20
        assert financials.total_user_side_earnings == Decimal("980")
        assert financials.platform_cut == Decimal("320")
        assert financials.platform_cut + financials.total_user_side_earnings == financials.total_song_gross_earnings

    def test_paid_out_only_counts_completed(self, platform):
        assert platform.get_platform_financials().total_paid_out == Decimal("500")

    def test_remaining_to_pay_includes_pending(self, platform):
        """Liability is user-side earnings plus credits minus completed payouts."""
        financials = platform.get_platform_financials()

        assert financials.total_credits == Decimal("50")
        assert financials.total_remaining_to_pay == Decimal("530")

    def test_differs_from_per_user_ledger(self, platform):
        """The per-user summary keeps counting only approved songs."""
        summary = platform.get_wallet_summary("b")

        assert summary.song_earnings == Decimal("0")
        assert summary.total_earnings == Decimal("40")

    def test_custom_default_rate(self):
        store = RecordStore(seed=False)
        store.songs.append(make_song("s1", "ghost", 100))
        service = WalletService(store, default_payout_rate=Decimal("0.6"))

        financials = service.get_platform_financials()

        assert financials.total_user_side_earnings == Decimal("60")
        assert financials.platform_cut == Decimal("40")

    def test_empty_platform(self):
        financials = WalletService(RecordStore(seed=False)).get_platform_financials()

        assert financials.total_song_gross_earnings == Decimal("0")
        assert financials.total_remaining_to_pay == Decimal("0")

    def test_seed_data(self):
        """The seeded song earns 1250 at 0.8."""
        financials = WalletService().get_platform_financials()

        assert financials.total_song_gross_earnings == Decimal("1250")
        assert financials.platform_cut == Decimal("250")
        assert financials.total_remaining_to_pay == Decimal("1000")
