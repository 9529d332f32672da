# badgesmith/config.py
"""
Centralized configuration for badge issuing.

Non-secret values are read from environment variables at import time with
sensible defaults. Key material is only read when load_signing_keys() is
called, and is never printed.

Usage:
    from badgesmith.config import get_verification_url, load_signing_keys

    keys = load_signing_keys()
    url = get_verification_url("abc123")

Environment Variables:
    BADGE_BASE_URL: Public base URL of the issuing site (default: http://localhost:3000)
    BADGE_ISSUER_NAME: Issuer organisation name (default: Badge Issuer)
    BADGE_ISSUER_URL: Issuer website (default: BADGE_BASE_URL)
    BADGE_ISSUER_EMAIL: Issuer contact email (optional)
    BADGE_ISSUER_DESCRIPTION: Issuer description (optional)
    BADGE_ISSUER_IMAGE_URL: Issuer logo URL (optional)
    BADGE_ISSUER_PRIVATE_KEY: Ed25519 private key, 64 hex characters
    BADGE_ISSUER_PUBLIC_KEY: Ed25519 public key, 64 hex characters
"""

import os
from dataclasses import dataclass
from typing import Final, Mapping, Optional

from badgesmith.credential import IssuerProfileConfig, ImageConfig
from badgesmith.errors import ConfigurationError
from badgesmith.keys import did_key_from_public_key, ensure_key_pair, verification_method

# =============================================================================
# Site Configuration
# =============================================================================

BASE_URL: Final[str] = os.getenv(
    "BADGE_BASE_URL",
    "http://localhost:3000"
)

# Path under BASE_URL where the issuer profile is served
ISSUER_PATH: Final[str] = "/api/badge/issuer"

# Path prefix for per-badge verification endpoints
BADGE_PATH: Final[str] = "/api/badge"

# =============================================================================
# Issuer Configuration
# =============================================================================

ISSUER_NAME: Final[str] = os.getenv("BADGE_ISSUER_NAME", "Badge Issuer")

ISSUER_URL: Final[str] = os.getenv("BADGE_ISSUER_URL", BASE_URL)

ISSUER_EMAIL: Final[Optional[str]] = os.getenv("BADGE_ISSUER_EMAIL")

ISSUER_DESCRIPTION: Final[Optional[str]] = os.getenv("BADGE_ISSUER_DESCRIPTION")

ISSUER_IMAGE_URL: Final[Optional[str]] = os.getenv("BADGE_ISSUER_IMAGE_URL")

# =============================================================================
# Signing Keys (names only; values are read on demand)
# =============================================================================

PRIVATE_KEY_ENV: Final[str] = "BADGE_ISSUER_PRIVATE_KEY"
PUBLIC_KEY_ENV: Final[str] = "BADGE_ISSUER_PUBLIC_KEY"


@dataclass
class SigningKeys:
    """Issuer signing key material and its did:key identity."""
    private_key_hex: str
    public_key_hex: str
    did: str
    verification_method: str

    def __repr__(self) -> str:
        return f"SigningKeys(did={self.did!r})"


# =============================================================================
# Helper Functions
# =============================================================================

def _base(base_url: Optional[str]) -> str:
    return (base_url or BASE_URL).rstrip("/")


def get_issuer_id(base_url: Optional[str] = None) -> str:
    """
    Issuer profile URL.

    Args:
        base_url: Override for BADGE_BASE_URL.

    Returns:
        URL like "https://example.org/api/badge/issuer"
    """
    return f"{_base(base_url)}{ISSUER_PATH}"


def get_verification_url(badge_id: str, base_url: Optional[str] = None) -> str:
    """
    Public verification endpoint for a badge, used as the legacy "verify" URL.

    Returns:
        URL like "https://example.org/api/badge/abc123/verify"
    """
    return f"{_base(base_url)}{BADGE_PATH}/{badge_id}/verify"


def get_key_document_url(key_id: str, base_url: Optional[str] = None) -> str:
    """URL where the Multikey document for ``key_id`` is served."""
    return f"{_base(base_url)}{BADGE_PATH}/keys/{key_id}"


def load_signing_keys(environ: Optional[Mapping[str, str]] = None) -> SigningKeys:
    """
    Load and cross-check the issuer signing keys.

    Args:
        environ: Mapping to read from (default: os.environ).

    Returns:
        SigningKeys with the derived did:key identity.

    Raises:
        ConfigurationError: If either key is unset.
        InvalidKeyMaterial: If a key is malformed or the pair does not match.
    """
    env = os.environ if environ is None else environ
    private_hex = env.get(PRIVATE_KEY_ENV)
    public_hex = env.get(PUBLIC_KEY_ENV)

    if not private_hex or not public_hex:
        raise ConfigurationError(
            f"Badge issuer keys must be set. Set {PRIVATE_KEY_ENV} and {PUBLIC_KEY_ENV}.",
            {"hasPrivateKey": bool(private_hex), "hasPublicKey": bool(public_hex)},
        )

    derived = ensure_key_pair(private_hex.strip(), public_hex.strip())
    did = did_key_from_public_key(derived)
    return SigningKeys(
        private_key_hex=private_hex.strip().lower(),
        public_key_hex=derived,
        did=did,
        verification_method=verification_method(did, derived),
    )


def issuer_profile_config(environ: Optional[Mapping[str, str]] = None) -> IssuerProfileConfig:
    """Build the builder's issuer configuration from the environment."""
    env = os.environ if environ is None else environ
    base_url = env.get("BADGE_BASE_URL", BASE_URL)
    image_url = env.get("BADGE_ISSUER_IMAGE_URL", ISSUER_IMAGE_URL)
    return IssuerProfileConfig(
        id=get_issuer_id(base_url),
        name=env.get("BADGE_ISSUER_NAME", ISSUER_NAME),
        url=env.get("BADGE_ISSUER_URL", base_url),
        email=env.get("BADGE_ISSUER_EMAIL", ISSUER_EMAIL),
        description=env.get("BADGE_ISSUER_DESCRIPTION", ISSUER_DESCRIPTION),
        image=ImageConfig(id=image_url) if image_url else None,
    )


# =============================================================================
# Configuration Summary (for debugging)
# =============================================================================

def print_config() -> None:
    """Print current configuration (for debugging). Key values are never shown."""
    print("Badge Configuration:")
    print(f"  BASE_URL:        {BASE_URL}")
    print(f"  ISSUER_ID:       {get_issuer_id()}")
    print(f"  ISSUER_NAME:     {ISSUER_NAME}")
    print(f"  ISSUER_URL:      {ISSUER_URL}")
    print(f"  ISSUER_EMAIL:    {ISSUER_EMAIL or '-'}")
    print(f"  {PRIVATE_KEY_ENV}: {'set' if os.getenv(PRIVATE_KEY_ENV) else 'not set'}")
    print(f"  {PUBLIC_KEY_ENV}:  {'set' if os.getenv(PUBLIC_KEY_ENV) else 'not set'}")


if __name__ == "__main__":
    print_config()
