"""
Funding service exceptions

Per-item failures inside a batch are reported as result values, not
exceptions. These are raised only for conditions that abort the request.
"""
from typing import List, Optional


class FundingError(Exception):
    """Base class for funding pipeline errors"""


class ValidationError(FundingError):
    """Bad input: malformed period, missing field, invalid amount"""


class NotFoundError(FundingError):
    """Unknown economy / merchant / video, or nothing computed for a period"""


class ConfigurationError(FundingError):
    """Missing or malformed configuration (funding settings, wallet credentials)"""


class PaymentProviderError(FundingError):
    """The Lightning payment API rejected a request or could not be reached"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class DisbursementInProgressError(FundingError):
    """Another dispatch run holds the lock for this funding month"""

    def __init__(self, funding_month: str):
        super().__init__(f"A disbursement run for {funding_month} is already in progress")
        self.funding_month = funding_month


class LedgerWriteError(FundingError):
    """
    The ledger could not record an attempt.

    Carries the attempts processed so far (including the one whose write
    failed) so the caller can report a partial result.
    """

    def __init__(self, message: str, attempts: Optional[List] = None):
        super().__init__(message)
        self.attempts = attempts or []
