"""
BlinkClient - Lightning payments over the Blink GraphQL API.

Operations used by the funding service:
- get_balance(): BTC wallet balance of the funding wallet
- resolve_wallet_id(username): default wallet of a Blink user (public query)
- send_intraledger(): Blink-to-Blink payment by wallet id
- send_to_ln_address(): payment to any Lightning address

Every request is a single attempt with an explicit timeout. GraphQL errors
and mutation-level errors are raised as PaymentProviderError carrying the
upstream message verbatim.

Usage:
    client = BlinkClient(api_url, api_key=settings.blink_api_key)
    balance = await client.get_balance()
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from services.errors import PaymentProviderError

logger = logging.getLogger(__name__)

WALLETS_QUERY = """
query Me {
  me {
    defaultAccount {
      wallets {
        id
        walletCurrency
        balance
      }
    }
  }
}
"""

ACCOUNT_DEFAULT_WALLET_QUERY = """
query AccountDefaultWallet($username: Username!) {
  accountDefaultWallet(username: $username) {
    id
    walletCurrency
  }
}
"""

INTRALEDGER_PAYMENT_MUTATION = """
mutation IntraLedgerPaymentSend($input: IntraLedgerPaymentSendInput!) {
  intraLedgerPaymentSend(input: $input) {
    status
    errors {
      message
    }
    transaction {
      id
    }
  }
}
"""

LN_ADDRESS_PAYMENT_MUTATION = """
mutation LnAddressPaymentSend($input: LnAddressPaymentSendInput!) {
  lnAddressPaymentSend(input: $input) {
    status
    errors {
      code
      message
    }
    transaction {
      id
    }
  }
}
"""

# Statuses after which the money has left (or is leaving) the wallet
SETTLED_STATUSES = {'SUCCESS', 'PENDING', 'ALREADY_PAID'}


@dataclass
class PaymentSendResult:
    status: str
    transaction_id: Optional[str] = None

    @property
    def settled(self) -> bool:
        return self.status in SETTLED_STATUSES


class BlinkClient:
    """Async Blink GraphQL client (one httpx client per request)"""

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    async def _execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        headers = {'Content-Type': 'application/json'}
        if self.api_key:
            headers['X-API-KEY'] = self.api_key

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.api_url,
                    json={'query': query, 'variables': variables or {}},
                    headers=headers,
                )
        except httpx.TimeoutException:
            raise PaymentProviderError(f"Blink API request timed out after {self.timeout:g}s")
        except httpx.HTTPError as e:
            raise PaymentProviderError(f"Network error contacting Blink: {e}")

        if response.status_code >= 400:
            raise PaymentProviderError(
                f"Blink API request failed ({response.status_code}): {response.text[:500]}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError:
            raise PaymentProviderError("Blink API returned a non-JSON response")

        errors = payload.get('errors')
        if errors:
            raise PaymentProviderError(errors[0].get('message') or 'Unknown GraphQL error')

        return payload.get('data') or {}

    async def get_wallets(self) -> List[Dict[str, Any]]:
        data = await self._execute(WALLETS_QUERY)
        me = data.get('me') or {}
        return (me.get('defaultAccount') or {}).get('wallets') or []

    async def get_balance(self) -> int:
        """Balance of the BTC wallet in sats (0 if the account has none)"""
        for wallet in await self.get_wallets():
            if wallet.get('walletCurrency') == 'BTC':
                return int(wallet.get('balance') or 0)
        return 0

    async def resolve_wallet_id(self, username: str) -> str:
        data = await self._execute(ACCOUNT_DEFAULT_WALLET_QUERY, {'username': username})
        wallet = data.get('accountDefaultWallet')
        if not wallet or not wallet.get('id'):
            raise PaymentProviderError(f"No Blink wallet found for {username}")
        return wallet['id']

    @staticmethod
    def _payment_result(payload: Optional[Dict[str, Any]]) -> PaymentSendResult:
        if not payload:
            raise PaymentProviderError("Empty payment response from Blink")
        errors = payload.get('errors') or []
        if errors:
            raise PaymentProviderError(errors[0].get('message') or 'Payment failed')

        status = payload.get('status') or 'UNKNOWN'
        transaction = payload.get('transaction') or {}
        result = PaymentSendResult(status=status, transaction_id=transaction.get('id'))
        if not result.settled:
            raise PaymentProviderError(f"Payment status {status}")
        if status == 'PENDING':
            logger.warning(f"⏳ Blink reported payment PENDING (transaction={result.transaction_id})")
        return result

    async def send_intraledger(
        self,
        wallet_id: str,
        recipient_wallet_id: str,
        amount_sats: int,
        memo: Optional[str] = None,
    ) -> PaymentSendResult:
        data = await self._execute(INTRALEDGER_PAYMENT_MUTATION, {
            'input': {
                'walletId': wallet_id,
                'recipientWalletId': recipient_wallet_id,
                'amount': amount_sats,
                'memo': memo,
            }
        })
        return self._payment_result(data.get('intraLedgerPaymentSend'))

    async def send_to_ln_address(
        self,
        wallet_id: str,
        ln_address: str,
        amount_sats: int,
        memo: Optional[str] = None,
    ) -> PaymentSendResult:
        # lnAddressPaymentSend has no memo field; the memo only travels on intraledger sends
        data = await self._execute(LN_ADDRESS_PAYMENT_MUTATION, {
            'input': {
                'walletId': wallet_id,
                'lnAddress': ln_address,
                'amount': amount_sats,
            }
        })
        return self._payment_result(data.get('lnAddressPaymentSend'))
