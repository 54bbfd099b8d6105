"""
Short prefixed ID generator for funding records.

Format: {prefix}_{base36_random}
- fd_xxxxxxxx  - funding disbursement (ledger row)
- rk_xxxxxxxx  - monthly ranking row

8 chars base36 = 36^8 = 2.8 trillion unique IDs per type
"""
import secrets

# Base36 alphabet (lowercase letters + digits)
ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
BASE = len(ALPHABET)  # 36

PREFIXES = {
    'disbursement': 'fd',
    'ranking': 'rk',
}


def _random_base36(length: int = 8) -> str:
    """Generate random base36 string"""
    return ''.join(ALPHABET[secrets.randbelow(BASE)] for _ in range(length))


def generate_id(entity_type: str) -> str:
    """
    Generate a new short ID for the given record type.

    Raises:
        ValueError: If entity_type is invalid
    """
    if entity_type not in PREFIXES:
        raise ValueError(f"Invalid entity type: {entity_type}. "
                         f"Must be one of: {list(PREFIXES.keys())}")

    return f"{PREFIXES[entity_type]}_{_random_base36(8)}"


def generate_disbursement_id() -> str:
    """Generate a new ledger row ID"""
    return generate_id('disbursement')


def generate_ranking_id() -> str:
    """Generate a new ranking row ID"""
    return generate_id('ranking')
