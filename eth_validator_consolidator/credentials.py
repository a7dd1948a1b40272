"""Decoding of withdrawal credentials and validation of user supplied keys."""

import re
from typing import Optional

from .models import CredentialType
from .utils import remove_0x_prefix


WITHDRAWAL_CREDENTIALS_LENGTH = 32
PUBKEY_LENGTH = 48
ADDRESS_LENGTH = 20

_HEX_RE = re.compile(r'[0-9a-fA-F]*')


def decode_withdrawal_credentials(credentials: str) -> bytes:
    """Decode 0x-prefixed withdrawal credentials.

    Args:
        credentials: str
            Hex encoded withdrawal credentials.

    Returns:
        bytes
            The 32 raw bytes.

    Raises:
        ValueError: If the value is not 32 bytes of hex.
    """
    raw = bytes.fromhex(remove_0x_prefix(credentials))
    if len(raw) != WITHDRAWAL_CREDENTIALS_LENGTH:
        raise ValueError(f'Invalid withdrawal credentials length: expected {WITHDRAWAL_CREDENTIALS_LENGTH} bytes, got {len(raw)}')
    return raw


def credential_type(credentials: Optional[str]) -> CredentialType:
    """Read the type tag in byte 0 of the withdrawal credentials.

    Args:
        credentials: Optional[str]
            Hex encoded withdrawal credentials.

    Returns:
        CredentialType
            The tag, NONE if missing, malformed or unknown.
    """
    if not credentials:
        return CredentialType.NONE

    try:
        raw = decode_withdrawal_credentials(credentials)
    except ValueError:
        return CredentialType.NONE

    try:
        return CredentialType(f'{raw[0]:02x}')
    except ValueError:
        return CredentialType.NONE


def is_execution_credentials(credentials: Optional[str]) -> bool:
    return credential_type(credentials) in (CredentialType.EXECUTION, CredentialType.COMPOUNDING)


def extract_withdrawal_address(credentials: Optional[str]) -> Optional[str]:
    """Extract the execution address embedded in 0x01 or 0x02 credentials.

    The address is stored in the last 20 bytes, after 11 zero bytes.

    Args:
        credentials: Optional[str]
            Hex encoded withdrawal credentials.

    Returns:
        Optional[str]
            Lower-cased 0x-prefixed address, None for other credential types.
    """
    if not is_execution_credentials(credentials):
        return None

    raw = decode_withdrawal_credentials(credentials)
    return '0x' + raw[-ADDRESS_LENGTH:].hex()


def _validate_hex(value: str, length: int, what: str) -> str:
    clean = remove_0x_prefix(value)

    if len(clean) != length * 2:
        raise ValueError(f'Invalid {what} length: expected {length * 2} hex chars ({length} bytes), got {len(clean)}')

    if not _HEX_RE.fullmatch(clean):
        raise ValueError(f'Invalid {what}: contains non-hex characters')

    return '0x' + clean.lower()


def validate_pubkey(pubkey: str) -> str:
    """Check a validator public key and return it 0x-prefixed, lower-cased."""
    return _validate_hex(pubkey, PUBKEY_LENGTH, 'pubkey')


def validate_address(address: str) -> str:
    """Check an execution address and return it 0x-prefixed, lower-cased."""
    return _validate_hex(address, ADDRESS_LENGTH, 'address')
