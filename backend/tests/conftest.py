"""
Pytest configuration and in-memory fakes for the funding service tests.

The fakes implement the same async methods as the asyncpg repositories and
the Blink client, so services run unchanged against them.
"""
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from models.domain.disbursement import DisbursementStats, DisbursementStatus, FundingDisbursement
from models.domain.economy import Economy
from models.domain.merchant import Merchant
from models.domain.video import VideoMerchantLink, VideoStatus, VideoSubmission
from repositories.settings_repository import funding_setting_values, parse_funding_config
from services.blink_client import PaymentSendResult
from services.errors import DisbursementInProgressError, PaymentProviderError
from utils.url_utils import video_url_hash

pytest_plugins = ('pytest_asyncio',)


def pytest_configure(config):
    """Configure pytest with asyncio marker."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an async test."
    )


# =============================================================================
# BUILDERS
# =============================================================================

def make_economy(economy_id: str, name: Optional[str] = None, created_day: int = 1, **kwargs) -> Economy:
    return Economy(
        id=economy_id,
        economy_name=name or economy_id.title(),
        slug=economy_id,
        created_at=datetime(2024, 1, created_day, tzinfo=timezone.utc),
        **kwargs,
    )


def make_video(
    video_id: str,
    economy_id: str,
    url: Optional[str] = None,
    status: VideoStatus = VideoStatus.APPROVED,
    month: str = "2025-03",
    day: int = 1,
) -> VideoSubmission:
    url = url or f"https://youtube.com/watch?v={video_id}"
    return VideoSubmission(
        id=video_id,
        economy_id=economy_id,
        video_url=url,
        video_url_hash=video_url_hash(url),
        submission_month=month,
        status=status,
        submitted_at=datetime(2025, 3, day, tzinfo=timezone.utc),
    )


def make_merchant(merchant_id: str, economy_id: str, address: Optional[str] = None,
                  provider: Optional[str] = None, verified: bool = True) -> Merchant:
    return Merchant(
        id=merchant_id,
        economy_id=economy_id,
        merchant_name=merchant_id.title(),
        lightning_address=address,
        payment_provider=provider,
        address_verified=verified,
    )


# =============================================================================
# FAKE REPOSITORIES
# =============================================================================

class FakeEconomyRepository:
    def __init__(self, economies: List[Economy]):
        self.economies = {e.id: e for e in economies}

    async def get_by_id(self, economy_id):
        return self.economies.get(economy_id)

    async def get_many(self, economy_ids):
        return [self.economies[i] for i in economy_ids if i in self.economies]

    async def list_active(self):
        return [e for e in self.economies.values() if e.is_active]


class FakeVideoRepository:
    def __init__(self, videos: List[VideoSubmission], links: Optional[List[VideoMerchantLink]] = None):
        self.videos = list(videos)
        self.links = list(links or [])

    async def get_by_url_hash(self, url_hash):
        matches = [v for v in self.videos if v.video_url_hash == url_hash]
        matches.sort(key=lambda v: (v.submitted_at, v.id))
        return matches[0] if matches else None

    async def list_for_period(self, period_key):
        return [v for v in self.videos if v.submission_month == period_key]

    async def get_merchant_links(self, video_ids):
        wanted = set(video_ids)
        return [l for l in self.links if l.video_id in wanted]


class FakeMerchantRepository:
    def __init__(self, merchants: List[Merchant]):
        self.merchants = {m.id: m for m in merchants}

    async def get_many(self, merchant_ids):
        return [self.merchants[i] for i in merchant_ids if i in self.merchants]


class FakeRankingRepository:
    def __init__(self):
        self.saved = {}
        self.funding_earned = {}

    async def replace_period(self, period, rankings):
        self.saved[period.key] = list(rankings)

    async def get_for_period(self, period):
        return list(self.saved.get(period.key, []))

    async def list_periods(self):
        from models.domain.period import Period
        return [Period.from_key(k) for k in sorted(self.saved, reverse=True)]

    async def set_funding_earned(self, period, amounts):
        self.funding_earned[period.key] = dict(amounts)


class FakeDisbursementRepository:
    """Ledger kept in a list; fail_on_record makes the next write(s) raise"""

    def __init__(self, rows: Optional[List[FundingDisbursement]] = None):
        self.rows: List[FundingDisbursement] = list(rows or [])
        self.credited: Dict[str, int] = {}
        self.locked = set()
        self.fail_on_record = False
        self.events: List[str] = []

    async def create_pending(self, disbursements):
        for i, d in enumerate(disbursements):
            d.id = d.id or f"fd_pending{i}"
            self.rows.append(d)
        return disbursements

    async def record_attempt(self, disbursement, credit_economy=False):
        if self.fail_on_record:
            raise ConnectionError("database unavailable")
        disbursement.id = disbursement.id or f"fd_{len(self.rows):08d}"
        self.rows.append(disbursement)
        if credit_economy:
            self.credited[disbursement.economy_id] = (
                self.credited.get(disbursement.economy_id, 0) + disbursement.amount_sats
            )
        self.events.append(f"record:{disbursement.economy_id}:{disbursement.status.value}")
        return disbursement

    async def has_completed(self, economy_id, funding_month, merchant_id=None):
        return any(
            r.economy_id == economy_id
            and r.funding_month == funding_month
            and r.status == DisbursementStatus.COMPLETED
            and (merchant_id is None or r.merchant_id is None or r.merchant_id == merchant_id)
            for r in self.rows
        )

    def _filter(self, filters):
        return [
            r for r in self.rows
            if (not filters.funding_month or r.funding_month == filters.funding_month)
            and (not filters.status or r.status == filters.status)
            and (not filters.economy_id or r.economy_id == filters.economy_id)
        ]

    async def list(self, filters, limit=50, offset=0):
        return self._filter(filters)[offset:offset + limit]

    async def count(self, filters):
        return len(self._filter(filters))

    def _superseded(self, row):
        return row.status == DisbursementStatus.PENDING and any(
            c.economy_id == row.economy_id
            and c.funding_month == row.funding_month
            and c.status == DisbursementStatus.COMPLETED
            and (c.merchant_id is None or row.merchant_id is None or c.merchant_id == row.merchant_id)
            for c in self.rows
        )

    async def stats(self, filters):
        rows = self._filter(filters)
        live = [r for r in rows if not self._superseded(r)]
        return DisbursementStats(
            total=len(live),
            completed=sum(1 for r in rows if r.status == DisbursementStatus.COMPLETED),
            failed=sum(1 for r in rows if r.status == DisbursementStatus.FAILED),
            pending=sum(1 for r in live if r.status == DisbursementStatus.PENDING),
            superseded=len(rows) - len(live),
            total_amount=sum(r.amount_sats for r in live),
            paid_amount=sum(r.amount_sats for r in rows if r.status == DisbursementStatus.COMPLETED),
        )

    @asynccontextmanager
    async def period_lock(self, funding_month):
        if funding_month in self.locked:
            raise DisbursementInProgressError(funding_month)
        self.locked.add(funding_month)
        try:
            yield
        finally:
            self.locked.discard(funding_month)


class FakeSettingsRepository:
    def __init__(self, values: Optional[Dict[str, str]] = None):
        self.values = dict(values or {})
        self.updated_by = None

    async def load_funding_config(self):
        return parse_funding_config(self.values)

    async def save_funding_config(self, updates, updated_by):
        merged = {**self.values, **funding_setting_values(updates)}
        config = parse_funding_config(merged)
        self.values = merged
        self.updated_by = updated_by
        return config


# =============================================================================
# FAKE BLINK CLIENT
# =============================================================================

class FakeBlinkClient:
    """
    Records every call. wallets maps Blink usernames to wallet ids;
    failures maps a recipient (wallet id or Lightning address) to the
    upstream error message to raise.
    """

    def __init__(self, balance: int = 10_000_000, wallets: Optional[Dict[str, str]] = None,
                 failures: Optional[Dict[str, str]] = None, ledger: Optional[FakeDisbursementRepository] = None):
        self.balance = balance
        self.wallets = wallets or {}
        self.failures = failures or {}
        self.ledger = ledger
        self.calls: List[tuple] = []

    def _event(self, text):
        if self.ledger is not None:
            self.ledger.events.append(text)

    async def get_balance(self):
        self.calls.append(('get_balance',))
        return self.balance

    async def resolve_wallet_id(self, username):
        self.calls.append(('resolve_wallet_id', username))
        if username not in self.wallets:
            raise PaymentProviderError(f"No Blink wallet found for {username}")
        return self.wallets[username]

    async def send_intraledger(self, wallet_id, recipient_wallet_id, amount_sats, memo=None):
        self.calls.append(('send_intraledger', recipient_wallet_id, amount_sats, memo))
        self._event(f"send:{recipient_wallet_id}")
        if recipient_wallet_id in self.failures:
            raise PaymentProviderError(self.failures[recipient_wallet_id])
        return PaymentSendResult(status='SUCCESS', transaction_id=f"tx-{recipient_wallet_id}")

    async def send_to_ln_address(self, wallet_id, ln_address, amount_sats, memo=None):
        self.calls.append(('send_to_ln_address', ln_address, amount_sats, memo))
        self._event(f"send:{ln_address}")
        if ln_address in self.failures:
            raise PaymentProviderError(self.failures[ln_address])
        return PaymentSendResult(status='SUCCESS', transaction_id=f"tx-{ln_address}")

    @property
    def sends(self):
        return [c for c in self.calls if c[0].startswith('send_')]


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def ledger() -> FakeDisbursementRepository:
    return FakeDisbursementRepository()


@pytest.fixture
def blink(ledger) -> FakeBlinkClient:
    return FakeBlinkClient(wallets={'alice': 'wallet-alice', 'bob': 'wallet-bob'}, ledger=ledger)


@pytest.fixture
def no_sleep():
    """Records courtesy delays instead of sleeping"""
    delays = []

    async def sleep(seconds):
        delays.append(seconds)

    sleep.delays = delays
    return sleep
