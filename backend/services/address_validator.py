"""
Payment address validation

Syntax-only validation of merchant/economy payout addresses against a named
provider's format rules. No network I/O here; the optional reachability
check lives in services.address_verification.

Providers:
- blink:      username@blink.sv (or pay.blink.sv), normalized to username@blink.sv
- fedi:       username@fedi.xyz or username@<federation>.fedi.xyz
- machankura: phone number, +<calling code><national number>, no separators
- other:      any syntactically valid local@domain.tld Lightning address
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from models.domain.payment import Recipient, RecipientKind

MAX_ADDRESS_LENGTH = 320
MAX_LOCAL_PART_LENGTH = 64

LOCAL_PART_PATTERN = re.compile(r'^[a-z0-9._-]+$')
GENERIC_LOCAL_PART_PATTERN = re.compile(r'^[a-z0-9._+-]+$')
DOMAIN_PATTERN = re.compile(
    r'^(?=.{4,253}$)([a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$'
)

# Machankura pays to phone numbers in these countries:
# calling code -> (country, national digit count, allowed leading mobile digits)
MACHANKURA_COUNTRIES: Dict[str, Tuple[str, int, str]] = {
    '+27': ('South Africa', 9, '678'),
    '+254': ('Kenya', 9, '17'),
    '+256': ('Uganda', 9, '7'),
    '+233': ('Ghana', 9, '25'),
    '+234': ('Nigeria', 10, '789'),
}

# Lightning address domain that routes to a Machankura phone wallet
MACHANKURA_LN_DOMAIN = '8333.mobi'

BLINK_DOMAINS = ('blink.sv', 'pay.blink.sv')
FEDI_DOMAINS = ('fedi.xyz',)


class PaymentProvider(str, Enum):
    BLINK = "blink"
    FEDI = "fedi"
    MACHANKURA = "machankura"
    OTHER = "other"


PROVIDER_DISPLAY_NAMES = {
    PaymentProvider.BLINK: 'Blink',
    PaymentProvider.FEDI: 'Fedi',
    PaymentProvider.MACHANKURA: 'Machankura',
    PaymentProvider.OTHER: 'Other',
}

# Providers with a fixed domain whitelist
EMAIL_PROVIDER_DOMAINS = {
    PaymentProvider.BLINK: BLINK_DOMAINS,
    PaymentProvider.FEDI: FEDI_DOMAINS,
}


@dataclass
class AddressValidationResult:
    valid: bool
    provider: str
    address: str
    normalized_address: Optional[str] = None
    error: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'valid': self.valid,
            'provider': self.provider,
            'address': self.address,
            'normalizedAddress': self.normalized_address,
            'error': self.error,
            'metadata': self.metadata or None,
        }


def provider_display_name(provider: Union[str, PaymentProvider]) -> str:
    try:
        return PROVIDER_DISPLAY_NAMES[PaymentProvider(provider)]
    except ValueError:
        return str(provider)


def _domain_allowed(domain: str, allowed: Tuple[str, ...]) -> bool:
    return any(domain == d or domain.endswith('.' + d) for d in allowed)


def _split_email(cleaned: str) -> Tuple[Optional[Tuple[str, str]], Optional[str]]:
    """Split local@domain, returning ((local, domain), None) or (None, error)"""
    at_count = cleaned.count('@')
    if at_count == 0:
        return None, "Invalid address format (expected: username@domain)"
    if at_count > 1:
        return None, "Address must contain exactly one @"
    local, domain = cleaned.split('@')
    if not local:
        return None, "Username cannot be empty"
    if not domain:
        return None, "Domain cannot be empty"
    if len(local) > MAX_LOCAL_PART_LENGTH:
        return None, f"Username exceeds {MAX_LOCAL_PART_LENGTH} characters"
    return (local, domain), None


def _validate_email_provider(cleaned: str, provider: PaymentProvider) -> Tuple[Optional[str], Optional[str]]:
    parts, error = _split_email(cleaned)
    if error:
        return None, error
    local, domain = parts

    if not LOCAL_PART_PATTERN.match(local):
        return None, "Username may only contain letters, digits, '.', '_' and '-'"

    allowed = EMAIL_PROVIDER_DOMAINS[provider]
    if not _domain_allowed(domain, allowed):
        return None, (
            f"Not a {provider_display_name(provider)} address "
            f"(expected domain: {' or '.join(allowed)})"
        )

    if provider == PaymentProvider.BLINK:
        return f"{local}@blink.sv", None
    return f"{local}@{domain}", None


def _validate_generic(cleaned: str) -> Tuple[Optional[str], Optional[str]]:
    parts, error = _split_email(cleaned)
    if error:
        return None, error
    local, domain = parts

    if not GENERIC_LOCAL_PART_PATTERN.match(local):
        return None, "Username contains invalid characters"
    if not DOMAIN_PATTERN.match(domain):
        return None, f"Invalid domain: {domain}"
    return f"{local}@{domain}", None


def _validate_phone(cleaned: str) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """Returns (normalized, country, error)"""
    if not cleaned.startswith('+'):
        return None, None, "Phone number must start with + (e.g., +254712345678)"

    # longest calling code first so +254 is never read as +25...
    for code in sorted(MACHANKURA_COUNTRIES, key=len, reverse=True):
        if not cleaned.startswith(code):
            continue
        country, digits, leading = MACHANKURA_COUNTRIES[code]
        national = cleaned[len(code):]
        if not national.isdigit() or not national.isascii():
            return None, None, "Phone number may only contain digits after the country code"
        if len(national) != digits:
            return None, None, f"{country} numbers must have {digits} digits after {code}"
        if national[0] not in leading:
            return None, None, f"Invalid mobile prefix for {country}"
        return cleaned, country, None

    return None, None, f"Unsupported country. Supported: {', '.join(MACHANKURA_COUNTRIES)}"


def detect_provider(cleaned: str) -> Optional[PaymentProvider]:
    """Provider whose specific grammar accepts this address, if any"""
    if _validate_phone(cleaned)[0]:
        return PaymentProvider.MACHANKURA
    for provider in EMAIL_PROVIDER_DOMAINS:
        if _validate_email_provider(cleaned, provider)[0]:
            return provider
    return None


def validate_address(address: Optional[str], provider: Union[str, PaymentProvider]) -> AddressValidationResult:
    """
    Validate a payment address for a provider.

    Args:
        address: Raw address as entered
        provider: blink, fedi, machankura or other

    Returns:
        AddressValidationResult (never raises)
    """
    provider_value = provider.value if isinstance(provider, PaymentProvider) else str(provider or '')
    raw = address if isinstance(address, str) else ''
    cleaned = raw.strip().lower()

    def invalid(error: str) -> AddressValidationResult:
        return AddressValidationResult(valid=False, provider=provider_value, address=cleaned, error=error)

    try:
        provider_enum = PaymentProvider(provider_value.strip().lower())
    except ValueError:
        return invalid(f"Unsupported payment provider: {provider_value}")
    provider_value = provider_enum.value

    if not cleaned:
        return invalid("Address cannot be empty")
    if len(cleaned) > MAX_ADDRESS_LENGTH:
        return invalid(f"Address exceeds {MAX_ADDRESS_LENGTH} characters")

    metadata = {}
    if provider_enum == PaymentProvider.MACHANKURA:
        normalized, country, error = _validate_phone(cleaned)
        if country:
            metadata['country'] = country
    elif provider_enum == PaymentProvider.OTHER:
        normalized, error = _validate_generic(cleaned)
    else:
        normalized, error = _validate_email_provider(cleaned, provider_enum)

    if error:
        detected = detect_provider(cleaned)
        if detected and detected != provider_enum:
            error = _mismatch_error(provider_enum, detected)
        return invalid(error)

    return AddressValidationResult(
        valid=True,
        provider=provider_value,
        address=cleaned,
        normalized_address=normalized,
        metadata=metadata,
    )


def _mismatch_error(requested: PaymentProvider, detected: PaymentProvider) -> str:
    return (
        f"Address does not match provider {provider_display_name(requested)} "
        f"(looks like a {provider_display_name(detected)} address)"
    )


def resolve_recipient(address: Optional[str]) -> Optional[Recipient]:
    """
    Resolve a stored address to something the payment API can route to.

    - Blink address      -> intraledger payment to the username's wallet
    - Machankura phone   -> Lightning address <digits>@8333.mobi
    - any other address  -> Lightning address as-is

    Returns None when the address cannot be resolved.
    """
    cleaned = (address or '').strip().lower()
    if not cleaned or len(cleaned) > MAX_ADDRESS_LENGTH:
        return None

    phone, _, _ = _validate_phone(cleaned)
    if phone:
        return Recipient(RecipientKind.LN_ADDRESS, f"{phone[1:]}@{MACHANKURA_LN_DOMAIN}")

    blink, _ = _validate_email_provider(cleaned, PaymentProvider.BLINK)
    if blink:
        return Recipient(RecipientKind.INTRALEDGER, blink.split('@')[0])

    generic, _ = _validate_generic(cleaned)
    if generic:
        return Recipient(RecipientKind.LN_ADDRESS, generic)

    return None
