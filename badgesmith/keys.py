# badgesmith/keys.py
"""
Ed25519 key and did:key utilities.

Keys travel as lowercase hex strings (32 bytes each). A did:key identifier
is the multicodec-prefixed public key, base58btc-encoded with the "z"
multibase sigil. These helpers know nothing about credentials and are
shared by both proof engines.

Example:
    >>> pair = generate_keypair()
    >>> did = did_key_from_public_key(pair.public_key_hex)
    >>> verification_method(did, pair.public_key_hex)
    'did:key:z6Mk...#z6Mk...'
"""

import re
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

import base58
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from badgesmith.errors import InvalidKeyMaterial


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Ed25519 public key multicodec prefix (0xed01, varint encoded)
ED25519_MULTICODEC = bytes([0xED, 0x01])

MULTIBASE_BASE58BTC = "z"
DID_KEY_PREFIX = "did:key:"

CREDENTIALS_V2_CONTEXT = "https://www.w3.org/ns/credentials/v2"
MULTIKEY_CONTEXT = "https://w3id.org/security/multikey/v1"

KEY_ID_PREFIX = "key-"
KEY_ID_HEX_LENGTH = 8

_HEX_KEY = re.compile(r"[0-9a-fA-F]{64}")
_BASE58_CHARS = re.compile(r"[1-9A-HJ-NP-Za-km-z]+")


@dataclass
class KeyPair:
    """An Ed25519 keypair with its derived did:key identity."""
    private_key_hex: str
    public_key_hex: str
    did: str
    verification_method: str


# =============================================================================
# Hex Key Material
# =============================================================================

def _key_bytes(value: Any, label: str) -> bytes:
    """Decode a 64-character hex key. The value itself is never echoed."""
    if not isinstance(value, str):
        raise InvalidKeyMaterial(f"{label} must be a hex string")
    if not _HEX_KEY.fullmatch(value):
        raise InvalidKeyMaterial(
            f"{label} must be 32 bytes (64 hex characters)",
            {"length": len(value), "expected": 64},
        )
    return bytes.fromhex(value)


def normalize_key_hex(value: Any, label: str = "Key") -> str:
    """
    Validate a hex key and return it lowercased.

    Raises:
        InvalidKeyMaterial: If the value is not exactly 64 hex characters.
    """
    return _key_bytes(value, label).hex()


def derive_public_key(private_key_hex: str) -> str:
    """
    Derive the Ed25519 public key paired with a private key.

    Args:
        private_key_hex: 32-byte private key seed as hex.

    Returns:
        The 32-byte public key as lowercase hex.

    Raises:
        InvalidKeyMaterial: If the private key is malformed.
    """
    seed = _key_bytes(private_key_hex, "Private key")
    private_key = Ed25519PrivateKey.from_private_bytes(seed)
    public_bytes = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return public_bytes.hex()


def load_private_key(private_key_hex: str) -> Ed25519PrivateKey:
    return Ed25519PrivateKey.from_private_bytes(_key_bytes(private_key_hex, "Private key"))


def load_public_key(public_key_hex: str) -> Ed25519PublicKey:
    public_bytes = _key_bytes(public_key_hex, "Public key")
    try:
        return Ed25519PublicKey.from_public_bytes(public_bytes)
    except ValueError:
        raise InvalidKeyMaterial("Public key is not a valid Ed25519 point") from None


def ensure_key_pair(private_key_hex: str, public_key_hex: Optional[str]) -> str:
    """
    Check that a claimed public key is the one paired with the private key.

    The pairing is always re-derived; a caller-supplied association is never
    trusted.

    Returns:
        The derived public key hex.

    Raises:
        InvalidKeyMaterial: If either key is malformed or they are not paired.
    """
    derived = derive_public_key(private_key_hex)
    if public_key_hex is not None and normalize_key_hex(public_key_hex, "Public key") != derived:
        raise InvalidKeyMaterial("Public key does not match private key")
    return derived


def generate_keypair() -> KeyPair:
    """
    Generate a new Ed25519 keypair and its did:key identity.

    Returns:
        KeyPair with hex keys, DID and verification method.
    """
    private_key = Ed25519PrivateKey.generate()
    private_hex = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    ).hex()
    public_hex = derive_public_key(private_hex)
    did = did_key_from_public_key(public_hex)
    return KeyPair(
        private_key_hex=private_hex,
        public_key_hex=public_hex,
        did=did,
        verification_method=verification_method(did, public_hex),
    )


# =============================================================================
# Multibase / did:key
# =============================================================================

def public_key_multibase(public_key_hex: str) -> str:
    """Encode a public key as a base58btc multibase Ed25519 multikey ("z6Mk...")."""
    public_bytes = _key_bytes(public_key_hex, "Public key")
    encoded = base58.b58encode(ED25519_MULTICODEC + public_bytes).decode("ascii")
    return f"{MULTIBASE_BASE58BTC}{encoded}"


def validate_multibase_public_key(value: Any) -> Tuple[bool, Optional[str]]:
    """
    Check that a value is a base58btc multibase Ed25519 public key.

    Returns:
        Tuple of (valid, error message or None)
    """
    if not isinstance(value, str) or not value.startswith(MULTIBASE_BASE58BTC):
        return False, 'Multibase public key must start with "z" (base58btc)'

    body = value[1:]
    if not body or not _BASE58_CHARS.fullmatch(body):
        return False, "Multibase public key contains invalid Base58 characters"

    decoded = base58.b58decode(body)
    if len(decoded) != len(ED25519_MULTICODEC) + 32:
        return False, f"Expected 34 bytes (2-byte prefix + 32-byte key), got {len(decoded)}"

    if decoded[:2] != ED25519_MULTICODEC:
        return False, "Missing Ed25519 multicodec prefix (0xed01)"

    return True, None


def public_key_from_multibase(value: str) -> str:
    """
    Decode a multibase Ed25519 multikey back to public key hex.

    Raises:
        InvalidKeyMaterial: If the value is not a valid Ed25519 multikey.
    """
    valid, error = validate_multibase_public_key(value)
    if not valid:
        raise InvalidKeyMaterial(error)
    return base58.b58decode(value[1:])[2:].hex()


def did_key_from_public_key(public_key_hex: str) -> str:
    """
    Derive the did:key identifier for a public key.

    Args:
        public_key_hex: 32-byte Ed25519 public key as hex.

    Returns:
        DID string, e.g. "did:key:z6Mk..."

    Raises:
        InvalidKeyMaterial: If the key is malformed.
    """
    return f"{DID_KEY_PREFIX}{public_key_multibase(public_key_hex)}"


def verification_method(did: str, public_key_hex: str) -> str:
    """
    Build the verification method URI: the DID plus the multikey fragment.

    Raises:
        InvalidKeyMaterial: If the key is malformed.
    """
    return f"{did}#{public_key_multibase(public_key_hex)}"


def did_key_verification_method(public_key_hex: str) -> str:
    """Shorthand for the did:key verification method of a public key."""
    return verification_method(did_key_from_public_key(public_key_hex), public_key_hex)


def is_did_key(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(DID_KEY_PREFIX + MULTIBASE_BASE58BTC)


def did_key_to_public_key_hex(did: str) -> str:
    """
    Resolve a did:key (optionally with a fragment) to its public key hex.

    Raises:
        InvalidKeyMaterial: If the DID is not an Ed25519 did:key.
    """
    if not is_did_key(did):
        raise InvalidKeyMaterial("Not an Ed25519 did:key identifier")
    identifier = did[len(DID_KEY_PREFIX):].split("#", 1)[0]
    return public_key_from_multibase(identifier)


# =============================================================================
# Key IDs and Multikey Documents
# =============================================================================

def generate_key_id(public_key_hex: str) -> str:
    """Build a short key id from the public key, e.g. "key-6c4cf79d"."""
    public_hex = normalize_key_hex(public_key_hex, "Public key")
    return f"{KEY_ID_PREFIX}{public_hex[:KEY_ID_HEX_LENGTH]}"


def validate_key_id(key_id: Any, public_key_hex: str) -> Tuple[bool, Optional[str]]:
    """
    Check that a key id belongs to a public key.

    The suffix after "key-" must be a prefix of the public key hex, so both
    the short form and the full-hex form are accepted.

    Returns:
        Tuple of (valid, error message or None)
    """
    if not isinstance(key_id, str) or not key_id.startswith(KEY_ID_PREFIX):
        return False, 'Key ID must start with "key-"'

    suffix = key_id[len(KEY_ID_PREFIX):].lower()
    if not suffix or not public_key_hex.lower().startswith(suffix):
        return False, "Key ID does not match public key prefix"

    return True, None


def _require_url(value: Any, label: str) -> str:
    parsed = urlparse(value) if isinstance(value, str) else None
    if parsed is None or parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"{label} must be a valid URL")
    return value.rstrip("/")


def generate_multikey_document(
    public_key_hex: str,
    key_id: str,
    base_url: str,
) -> Dict[str, Any]:
    """
    Build the Multikey document served for an issuer key.

    Args:
        public_key_hex: Ed25519 public key hex.
        key_id: Key id, e.g. from generate_key_id().
        base_url: Issuer base URL, used as the controller.

    Returns:
        Multikey document dict.

    Raises:
        InvalidKeyMaterial: If the public key is malformed.
        ValueError: If the key id or base URL is invalid.
    """
    multibase = public_key_multibase(public_key_hex)

    valid, error = validate_key_id(key_id, public_key_hex)
    if not valid:
        raise ValueError(error)

    controller = _require_url(base_url, "Issuer URL")

    return {
        "@context": [CREDENTIALS_V2_CONTEXT, MULTIKEY_CONTEXT],
        "id": f"{controller}/api/badge/keys/{key_id}",
        "type": "Multikey",
        "controller": controller,
        "publicKeyMultibase": multibase,
    }
