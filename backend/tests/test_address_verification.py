"""
Address reachability checks (LNURL well-known and Blink lookup)
"""
import json

import httpx
import pytest

from services.address_verification import AddressVerifier

BLINK_URL = "https://api.blink.sv/graphql"


def lnurl_and_blink(request):
    if request.url.host == "api.blink.sv":
        username = json.loads(request.content)['variables']['username']
        if username == "alice":
            return httpx.Response(200, json={'data': {'accountDefaultWallet': {'id': 'wallet-alice'}}})
        return httpx.Response(200, json={'data': None, 'errors': [{'message': 'Account not found'}]})

    if request.url.host == "slow.example.com":
        raise httpx.ConnectTimeout("timed out", request=request)
    if request.url.path == "/.well-known/lnurlp/carol":
        return httpx.Response(200, json={
            'tag': 'payRequest', 'minSendable': 1000, 'maxSendable': 100_000_000,
            'callback': 'https://getalby.com/lnurlp/carol/callback',
        })
    if request.url.path == "/.well-known/lnurlp/broken":
        return httpx.Response(200, json={'status': 'ERROR', 'reason': 'User disabled'})
    return httpx.Response(404, text="not found")


@pytest.fixture
def verifier():
    return AddressVerifier(BLINK_URL, timeout=2, transport=httpx.MockTransport(lnurl_and_blink))


class TestVerifyReachable:

    @pytest.mark.asyncio
    async def test_lnurl_pay_endpoint(self, verifier):
        result = await verifier.verify_reachable("Carol@GetAlby.com", "other")
        assert result.valid
        assert result.metadata['verified'] is True
        assert result.metadata['minSendable'] == 1000

    @pytest.mark.asyncio
    async def test_lnurl_error_reason(self, verifier):
        result = await verifier.verify_reachable("broken@getalby.com", "other")
        assert not result.valid
        assert result.error == "User disabled"
        assert result.normalized_address == "broken@getalby.com"

    @pytest.mark.asyncio
    async def test_lnurl_not_found(self, verifier):
        result = await verifier.verify_reachable("nobody@getalby.com", "other")
        assert not result.valid
        assert "404" in result.error

    @pytest.mark.asyncio
    async def test_timeout_is_a_result(self, verifier):
        result = await verifier.verify_reachable("carol@slow.example.com", "other")
        assert not result.valid
        assert "timed out" in result.error

    @pytest.mark.asyncio
    async def test_blink_username(self, verifier):
        ok = await verifier.verify_reachable("alice@pay.blink.sv", "blink")
        missing = await verifier.verify_reachable("ghost@blink.sv", "blink")
        assert ok.valid and ok.metadata['walletId'] == 'wallet-alice'
        assert not missing.valid
        assert missing.error == "Blink username not found: ghost"

    @pytest.mark.asyncio
    async def test_machankura_is_syntax_only(self, verifier):
        result = await verifier.verify_reachable("+254712345678", "machankura")
        assert result.valid
        assert 'verified' not in result.metadata

    @pytest.mark.asyncio
    async def test_syntax_failure_skips_network(self):
        def explode(request):
            raise AssertionError("no request expected")

        verifier = AddressVerifier(BLINK_URL, transport=httpx.MockTransport(explode))
        result = await verifier.verify_reachable("not-an-address", "other")
        assert not result.valid


class TestBatchVerify:

    @pytest.mark.asyncio
    async def test_keeps_input_order_across_chunks(self, verifier, monkeypatch):
        monkeypatch.setattr("services.address_verification.BATCH_PAUSE_SECONDS", 0)
        addresses = [("carol@getalby.com", "other"), ("nobody@getalby.com", "other")] * 6

        results = await verifier.batch_verify(addresses)

        assert [r.valid for r in results] == [True, False] * 6
