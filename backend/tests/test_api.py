"""
HTTP layer tests: routers run against in-memory fakes via
app.dependency_overrides. TestClient is used without a context manager
so the lifespan (PostgreSQL pool) never starts.
"""
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from api import deps
from main import app
from middleware.auth import Capability, Role, has_capability
from middleware.jwt_session import create_access_token
from models.domain.disbursement import DisbursementStatus, FundingDisbursement
from models.domain.funding import FundingConfig
from models.domain.period import Period
from models.domain.ranking import EconomyRanking
from services.address_verification import AddressVerifier
from services.duplicate_detection import DuplicateDetector
from services.funding_allocator import FundingAllocator
from services.merchant_distributor import MerchantDistributor
from services.payment_dispatcher import PaymentDispatcher
from services.ranking_engine import RankingEngine

from conftest import (
    FakeBlinkClient,
    FakeDisbursementRepository,
    FakeEconomyRepository,
    FakeMerchantRepository,
    FakeRankingRepository,
    FakeSettingsRepository,
    FakeVideoRepository,
    make_economy,
    make_video,
)

MARCH = Period.of(2025, 3)


def auth(role: str) -> dict:
    token = create_access_token("u1", f"{role}@cbaf.org", role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def fakes():
    rankings = FakeRankingRepository()
    rankings.saved[MARCH.key] = [
        EconomyRanking("e1", "Bitcoin Ekasi", videos_approved=2, merchants_total=3, merchants_new=1, overall_rank=1),
        EconomyRanking("e2", "Bitcoin Victoria Falls", videos_approved=1, merchants_total=1, overall_rank=2),
    ]
    economies = FakeEconomyRepository([
        make_economy("e1", lightning_address="ekasi@blink.sv"),
        make_economy("e2", created_day=2),
    ])
    videos = FakeVideoRepository([make_video("v1", "e1", url="https://youtube.com/watch?v=abc123")])
    ledger = FakeDisbursementRepository()
    blink = FakeBlinkClient(wallets={'ekasi': 'wallet-ekasi'}, ledger=ledger)
    settings_repo = FakeSettingsRepository({'funding_base_amount': '200000'})

    async def no_sleep(seconds):
        pass

    overrides = {
        deps.get_funding_config: lambda: FundingConfig(),
        deps.get_funding_allocator: lambda: FundingAllocator(rankings, economies, ledger),
        deps.get_merchant_distributor: lambda: MerchantDistributor(videos, FakeMerchantRepository([])),
        deps.get_ranking_engine: lambda: RankingEngine(economies, videos, rankings),
        deps.get_duplicate_detector: lambda: DuplicateDetector(videos),
        deps.get_disbursement_repo: lambda: ledger,
        deps.get_settings_repo: lambda: settings_repo,
        deps.get_payment_dispatcher: lambda: PaymentDispatcher(
            blink, ledger, FakeMerchantRepository([]), wallet_id="funding", sleep=no_sleep,
        ),
    }
    app.dependency_overrides.update(overrides)
    yield {'ledger': ledger, 'blink': blink, 'rankings': rankings, 'settings': settings_repo}
    app.dependency_overrides.clear()


@pytest.fixture
def client(fakes):
    return TestClient(app)


# =============================================================================
# AUTH
# =============================================================================

class TestAuth:

    def test_missing_token_is_401(self, client):
        assert client.post("/api/cbaf/funding/calculate", json={"period": "2025-03"}).status_code == 401

    def test_garbage_token_is_401(self, client):
        response = client.get("/api/cbaf/rankings?period=2025-03", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_role_without_capability_is_403(self, client):
        response = client.post("/api/cbaf/funding/calculate", json={"period": "2025-03"}, headers=auth("bce"))
        assert response.status_code == 403

    def test_only_super_admin_sends_payments(self):
        assert not has_capability(Role.ADMIN, Capability.SEND_PAYMENTS)
        assert has_capability(Role.SUPER_ADMIN, Capability.SEND_PAYMENTS)
        assert has_capability(Role.BCE, Capability.SUBMIT_VIDEOS)


# =============================================================================
# RANKINGS AND FUNDING
# =============================================================================

class TestFundingEndpoints:

    def test_saved_rankings(self, client):
        response = client.get("/api/cbaf/rankings?period=2025-03", headers=auth("bce"))
        body = response.json()
        assert body['count'] == 2
        assert body['period']['month'] == "2025-03"

    def test_missing_rankings_is_empty(self, client):
        response = client.get("/api/cbaf/rankings?year=2024&month=1", headers=auth("bce"))
        assert response.json()['rankings'] == []

    def test_calculate_funding(self, client):
        response = client.post("/api/cbaf/funding/calculate", json={"period": "2025-03"}, headers=auth("admin"))

        assert response.status_code == 200
        pool = response.json()['fundingPool']
        totals = [a['total_funding'] for a in pool['allocations']]
        # rank weights 3:2 over 5M, all 4.9M performance pool to the only new-merchant economy
        assert totals == [100_000 + 3_000_000 + 4_900_000, 100_000 + 2_000_000]
        assert pool['totalAllocated'] == sum(totals)
        assert pool['totalPool'] == 2 * 100_000 + 5_000_000 + 4_900_000

        records = response.json()['paymentRecords']
        assert [r['economyId'] for r in records] == ["e1"]

    def test_calculate_with_pool_override(self, client):
        response = client.post(
            "/api/cbaf/funding/calculate", json={"period": "2025-03", "totalPool": 42}, headers=auth("admin"),
        )
        assert response.json()['fundingPool']['totalPool'] == 42

    def test_calculate_unknown_period_is_404(self, client):
        response = client.post("/api/cbaf/funding/calculate", json={"period": "2025-04"}, headers=auth("admin"))
        assert response.status_code == 404

    def test_calculate_bad_period_is_400(self, client):
        response = client.post("/api/cbaf/funding/calculate", json={"period": "March"}, headers=auth("admin"))
        assert response.status_code == 400

    def test_save_funding(self, client, fakes):
        payload = {
            "period": "2025-03",
            "fundingData": {"allocations": [
                {"economyId": "e1", "economyName": "Bitcoin Ekasi", "lightningAddress": "ekasi@blink.sv",
                 "overallRank": 1, "totalFunding": 5000},
            ]},
        }
        response = client.post("/api/cbaf/funding/save", json=payload, headers=auth("super_admin"))
        assert response.json()['count'] == 1
        assert fakes['ledger'].rows[0].status == DisbursementStatus.PENDING

    def test_merchant_level(self, client):
        response = client.post(
            "/api/cbaf/funding/calculate-merchant-level", json={"period": "2025-03"}, headers=auth("admin"),
        )
        body = response.json()
        assert body['payments'] == []
        assert body['merchantFunding']['totalUnallocated'] == body['economyFunding']['totalAllocated']


# =============================================================================
# PAYMENTS
# =============================================================================

class TestSendBatchEndpoint:

    def batch(self, **extra):
        return {
            "payments": [
                {"economyId": "e1", "economyName": "Bitcoin Ekasi", "address": "ekasi@blink.sv", "amount": 5000},
                {"economyId": "e2", "address": "not an address", "amount": 100},
            ],
            "fundingMonth": "2025-03",
            "fundingYear": 2025,
            **extra,
        }

    def test_items_succeed_and_fail_independently(self, client, fakes):
        response = client.post("/api/cbaf/funding/send-batch", json=self.batch(), headers=auth("super_admin"))

        assert response.status_code == 200
        body = response.json()
        assert [r['success'] for r in body['results']] == [True, False]
        assert body['results'][1]['error'] == "Invalid address format"
        assert body['summary']['totalSent'] == 5000
        assert len(fakes['blink'].sends) == 1

    def test_admin_cannot_send(self, client):
        response = client.post("/api/cbaf/funding/send-batch", json=self.batch(), headers=auth("admin"))
        assert response.status_code == 403

    def test_concurrent_run_is_409(self, client, fakes):
        fakes['ledger'].locked.add("2025-03")
        response = client.post("/api/cbaf/funding/send-batch", json=self.batch(), headers=auth("super_admin"))
        assert response.status_code == 409

    def test_year_mismatch_is_400(self, client):
        response = client.post(
            "/api/cbaf/funding/send-batch", json=self.batch(fundingYear=2024), headers=auth("super_admin"),
        )
        assert response.status_code == 400

    def test_empty_batch_is_422(self, client):
        response = client.post(
            "/api/cbaf/funding/send-batch",
            json={"payments": [], "fundingMonth": "2025-03", "fundingYear": 2025},
            headers=auth("super_admin"),
        )
        assert response.status_code == 422

    def test_ledger_failure_is_500_with_results(self, client, fakes):
        fakes['ledger'].fail_on_record = True
        response = client.post("/api/cbaf/funding/send-batch", json=self.batch(), headers=auth("super_admin"))
        assert response.status_code == 500
        results = response.json()['detail']['results']
        assert results[0]['success'] is True
        assert results[0]['anomaly']


class TestHistoryEndpoint:

    @pytest.fixture
    def rows(self, fakes):
        for i, status in enumerate([DisbursementStatus.COMPLETED, DisbursementStatus.FAILED, DisbursementStatus.COMPLETED]):
            fakes['ledger'].rows.append(FundingDisbursement(
                id=f"fd{i}", economy_id="e1", amount_sats=1000 * (i + 1), funding_month="2025-03",
                funding_year=2025, status=status, initiated_by="admin",
            ))

    def test_filters_pagination_and_stats(self, client, rows):
        response = client.get(
            "/api/cbaf/payments/history?period=2025-03&limit=2", headers=auth("admin"),
        )
        body = response.json()
        assert len(body['disbursements']) == 2
        assert body['pagination'] == {'total': 3, 'limit': 2, 'offset': 0, 'hasMore': True}
        assert body['stats']['completed'] == 2
        assert body['stats']['paidAmount'] == 4000

    def test_saved_allocation_not_counted_twice_once_paid(self, client, fakes):
        saved = {
            "period": "2025-03",
            "fundingData": {"allocations": [
                {"economyId": "e1", "economyName": "Bitcoin Ekasi", "lightningAddress": "ekasi@blink.sv",
                 "overallRank": 1, "totalFunding": 5000},
            ]},
        }
        client.post("/api/cbaf/funding/save", json=saved, headers=auth("super_admin"))
        client.post("/api/cbaf/funding/send-batch", json=TestSendBatchEndpoint().batch(), headers=auth("super_admin"))

        body = client.get("/api/cbaf/payments/history?period=2025-03", headers=auth("admin")).json()

        assert body['pagination']['total'] == 3
        assert body['stats'] == {
            'total': 2, 'completed': 1, 'failed': 1, 'pending': 0, 'superseded': 1,
            'totalAmount': 5100, 'paidAmount': 5000,
        }

    def test_unpaid_allocation_stays_pending(self, client, fakes):
        fakes['ledger'].rows.append(FundingDisbursement(
            economy_id="e2", amount_sats=700, funding_month="2025-03", funding_year=2025,
            status=DisbursementStatus.PENDING, initiated_by="admin",
        ))
        fakes['ledger'].rows.append(FundingDisbursement(
            economy_id="e1", amount_sats=900, funding_month="2025-03", funding_year=2025,
            status=DisbursementStatus.COMPLETED, initiated_by="admin",
        ))

        stats = client.get("/api/cbaf/payments/history?period=2025-03", headers=auth("admin")).json()['stats']

        assert stats['pending'] == 1
        assert stats['superseded'] == 0
        assert stats['totalAmount'] == 1600

    def test_status_filter(self, client, rows):
        response = client.get("/api/cbaf/payments/history?status=failed", headers=auth("admin"))
        assert [d['id'] for d in response.json()['disbursements']] == ["fd1"]

    def test_invalid_status_is_400(self, client):
        response = client.get("/api/cbaf/payments/history?status=paid", headers=auth("admin"))
        assert response.status_code == 400

    def test_limit_bounds(self, client):
        response = client.get("/api/cbaf/payments/history?limit=500", headers=auth("admin"))
        assert response.status_code == 422


# =============================================================================
# VIDEOS AND ADDRESSES
# =============================================================================

class TestSubmissionChecks:

    def test_duplicate_video(self, client):
        response = client.post(
            "/api/cbaf/videos/check-duplicate",
            json={"url": "https://youtu.be/ABC123", "economyId": "e2"},
            headers=auth("bce"),
        )
        body = response.json()
        assert body['isDuplicate'] is True
        assert body['normalizedUrl'] == "youtube:abc123"

    def test_blank_url_is_400(self, client):
        response = client.post("/api/cbaf/videos/check-duplicate", json={"url": "   "}, headers=auth("bce"))
        assert response.status_code == 400

    def test_validate_address(self, client):
        response = client.post(
            "/api/cbaf/validate-address",
            json={"address": "  Alice@Pay.Blink.sv ", "provider": "blink"},
            headers=auth("bce"),
        )
        body = response.json()
        assert body['valid'] is True
        assert body['normalizedAddress'] == "alice@blink.sv"

    def test_validate_address_provider_mismatch(self, client):
        response = client.post(
            "/api/cbaf/validate-address",
            json={"address": "+254712345678", "provider": "blink"},
            headers=auth("bce"),
        )
        body = response.json()
        assert body['valid'] is False
        assert "Machankura" in body['error']

    def test_verify_batch(self, client, monkeypatch):
        monkeypatch.setattr("services.address_verification.BATCH_PAUSE_SECONDS", 0)

        def blink_lookup(request):
            username = json.loads(request.content)['variables']['username']
            if username == "ekasi":
                return httpx.Response(200, json={'data': {'accountDefaultWallet': {'id': 'wallet-ekasi'}}})
            return httpx.Response(200, json={'data': None, 'errors': [{'message': 'Account not found'}]})

        app.dependency_overrides[deps.get_address_verifier] = lambda: AddressVerifier(
            "https://api.blink.sv/graphql", transport=httpx.MockTransport(blink_lookup),
        )
        response = client.post(
            "/api/cbaf/funding/verify-batch",
            json={"addresses": [
                {"id": "e1", "economyName": "Bitcoin Ekasi", "cleanedAddress": "Ekasi@Pay.Blink.sv"},
                {"id": "e2", "economyName": "Bitcoin Victoria Falls", "cleanedAddress": "ghost@blink.sv"},
                {"id": "e3", "cleanedAddress": "+254712345678", "provider": "machankura"},
            ]},
            headers=auth("super_admin"),
        )

        body = response.json()
        assert [r['status'] for r in body['results']] == ['valid', 'invalid', 'valid']
        assert body['results'][0]['address'] == "ekasi@blink.sv"
        assert body['results'][0]['walletId'] == "wallet-ekasi"
        assert body['results'][1]['error'] == "Blink username not found: ghost"
        assert body['stats'] == {'total': 3, 'valid': 2, 'invalid': 1}

    def test_verify_batch_is_super_admin_only(self, client):
        response = client.post(
            "/api/cbaf/funding/verify-batch",
            json={"addresses": [{"id": "e1", "cleanedAddress": "ekasi@blink.sv"}]},
            headers=auth("admin"),
        )
        assert response.status_code == 403


# =============================================================================
# SETTINGS
# =============================================================================

class TestFundingConfigEndpoints:

    def test_get_merges_stored_values_with_defaults(self, client):
        response = client.get("/api/cbaf/settings/funding-config", headers=auth("super_admin"))
        assert response.json()['config'] == {
            'baseAmount': 200_000,
            'rankBonusEnabled': True,
            'rankBonusPool': 5_000_000,
            'performanceBonusEnabled': True,
            'performanceBonusPool': 4_900_000,
        }

    def test_partial_update(self, client, fakes):
        response = client.put(
            "/api/cbaf/settings/funding-config",
            json={"rankBonusPool": 6_000_000, "performanceBonusEnabled": False},
            headers=auth("super_admin"),
        )

        config = response.json()['config']
        assert config['baseAmount'] == 200_000
        assert config['rankBonusPool'] == 6_000_000
        assert config['performanceBonusEnabled'] is False
        assert fakes['settings'].values == {
            'funding_base_amount': '200000',
            'funding_rank_bonus_pool': '6000000',
            'funding_performance_bonus_enabled': 'false',
        }
        assert fakes['settings'].updated_by == "super_admin@cbaf.org"

    @pytest.mark.parametrize("payload", [{"baseAmount": 1_000_001}, {"rankBonusPool": -1}, {"performanceBonusPool": 100_000_001}])
    def test_out_of_range_is_422(self, client, fakes, payload):
        response = client.put("/api/cbaf/settings/funding-config", json=payload, headers=auth("super_admin"))
        assert response.status_code == 422
        assert fakes['settings'].updated_by is None

    def test_empty_update_is_400(self, client):
        response = client.put("/api/cbaf/settings/funding-config", json={}, headers=auth("super_admin"))
        assert response.status_code == 400

    def test_admin_cannot_read_or_change(self, client):
        assert client.get("/api/cbaf/settings/funding-config", headers=auth("admin")).status_code == 403
        response = client.put("/api/cbaf/settings/funding-config", json={"baseAmount": 1}, headers=auth("admin"))
        assert response.status_code == 403
