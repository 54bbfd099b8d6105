"""
Address reachability checks

Optional network step on top of services.address_validator: syntax first,
then ask the provider whether the address resolves.

- blink:      accountDefaultWallet(username) GraphQL query
- fedi/other: LNURL-pay well-known endpoint (LUD-16)
- machankura: syntax only (phone wallets have no public lookup)

Never raises; every transport problem becomes a valid=False result.
"""
import asyncio
import logging
from typing import List, Optional, Tuple

import httpx

from services.address_validator import (
    AddressValidationResult,
    PaymentProvider,
    validate_address,
)
from services.blink_client import BlinkClient
from services.errors import PaymentProviderError

logger = logging.getLogger(__name__)

BATCH_CHUNK_SIZE = 10
BATCH_PAUSE_SECONDS = 0.1


class AddressVerifier:
    """Reachability checks against the provider (10 s timeout per check)"""

    def __init__(
        self,
        blink_api_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.transport = transport
        # accountDefaultWallet is a public query, no API key needed
        self.blink = BlinkClient(blink_api_url, timeout=timeout, transport=transport)

    async def verify_reachable(self, address: str, provider: str) -> AddressValidationResult:
        result = validate_address(address, provider)
        if not result.valid:
            return result

        if result.provider == PaymentProvider.MACHANKURA.value:
            return result

        username, domain = result.normalized_address.split('@')
        if result.provider == PaymentProvider.BLINK.value:
            return await self._verify_blink(result, username)
        return await self._verify_lnurl(result, username, domain)

    async def _verify_blink(self, result: AddressValidationResult, username: str) -> AddressValidationResult:
        try:
            wallet_id = await self.blink.resolve_wallet_id(username)
        except PaymentProviderError as e:
            logger.info(f"Blink lookup failed for {username}: {e.message}")
            return self._unreachable(result, f"Blink username not found: {username}")

        result.metadata['walletId'] = wallet_id
        result.metadata['verified'] = True
        return result

    async def _verify_lnurl(self, result: AddressValidationResult, username: str, domain: str) -> AddressValidationResult:
        url = f"https://{domain}/.well-known/lnurlp/{username}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url)
        except httpx.TimeoutException:
            return self._unreachable(result, "Address verification timed out")
        except httpx.HTTPError as e:
            return self._unreachable(result, f"Could not reach {domain}: {e}")

        if response.status_code != 200:
            return self._unreachable(result, f"Lightning address not found ({response.status_code})")

        try:
            payload = response.json()
        except ValueError:
            return self._unreachable(result, "Invalid LNURL response")

        if payload.get('status') == 'ERROR':
            return self._unreachable(result, payload.get('reason') or 'Lightning address rejected')
        if payload.get('tag') != 'payRequest':
            return self._unreachable(result, "Invalid LNURL response")

        result.metadata['verified'] = True
        result.metadata['minSendable'] = payload.get('minSendable')
        result.metadata['maxSendable'] = payload.get('maxSendable')
        return result

    @staticmethod
    def _unreachable(result: AddressValidationResult, error: str) -> AddressValidationResult:
        return AddressValidationResult(
            valid=False,
            provider=result.provider,
            address=result.address,
            normalized_address=result.normalized_address,
            error=error,
            metadata={**result.metadata, 'verified': False},
        )

    async def batch_verify(self, addresses: List[Tuple[str, str]]) -> List[AddressValidationResult]:
        """
        Verify (address, provider) pairs in chunks of 10, pausing briefly
        between chunks. Results keep input order.
        """
        results: List[AddressValidationResult] = []
        for start in range(0, len(addresses), BATCH_CHUNK_SIZE):
            chunk = addresses[start:start + BATCH_CHUNK_SIZE]
            results.extend(await asyncio.gather(
                *(self.verify_reachable(address, provider) for address, provider in chunk)
            ))
            if start + BATCH_CHUNK_SIZE < len(addresses):
                await asyncio.sleep(BATCH_PAUSE_SECONDS)
        return results
