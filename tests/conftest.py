"""
Shared pytest fixtures for badgesmith tests.
"""

import copy
from datetime import datetime, timezone

import pytest

from badgesmith import (
    AchievementConfig,
    CredentialConfig,
    CriteriaConfig,
    EvidenceConfig,
    ImageConfig,
    IssuerProfileConfig,
    SubjectProfile,
    create_credential,
    derive_public_key,
    generate_keypair,
    sign_credential,
)


PRIVATE_KEY_HEX = "31875f663f58ee90686db580f0df732535b808674ac27f1d88f8cbd4e18ba52f"
OTHER_PRIVATE_KEY_HEX = "d6e2f676b1c106ffe56b08424a77b5590d8a19cb119ecb35a005b1b4baa570d2"

CREATED = "2024-06-01T12:00:00Z"
VERIFIED_AT = datetime(2025, 1, 1, tzinfo=timezone.utc)

BASE_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="100" height="100" viewBox="0 0 100 100">\n'
    '  <rect width="100" height="100" fill="blue"/>\n'
    '</svg>'
)


@pytest.fixture
def private_key_hex() -> str:
    """Fixed issuer private key."""
    return PRIVATE_KEY_HEX


@pytest.fixture
def public_key_hex() -> str:
    """Public key paired with the fixed issuer private key."""
    return derive_public_key(PRIVATE_KEY_HEX)


@pytest.fixture
def other_public_key_hex() -> str:
    """A public key unrelated to the issuer key."""
    return derive_public_key(OTHER_PRIVATE_KEY_HEX)


@pytest.fixture
def keypair():
    """Generate a fresh keypair."""
    return generate_keypair()


@pytest.fixture
def credential_config() -> CredentialConfig:
    """A complete builder configuration."""
    issuer = IssuerProfileConfig(
        id="https://badges.example.org/api/badge/issuer",
        name="Example Conference",
        url="https://badges.example.org",
        email="badges@example.org",
        description="Community conference",
        image=ImageConfig(id="https://badges.example.org/logo.png"),
    )
    achievement = AchievementConfig(
        id="https://badges.example.org/achievements/speaker-2024",
        name="Speaker 2024",
        description="Spoke at Example Conference 2024",
        criteria=CriteriaConfig(
            narrative="Delivered an accepted talk at the conference.",
            id="https://badges.example.org/criteria/speaker",
        ),
        image=ImageConfig(id="https://badges.example.org/badges/speaker.svg", caption="Speaker badge"),
        evidence=[
            EvidenceConfig(
                id="https://badges.example.org/talks/42",
                name="Talk recording",
                description="Recording of the talk",
            )
        ],
    )
    return CredentialConfig(
        credential_id="https://badges.example.org/api/badge/abc123",
        issuer=issuer,
        subject=SubjectProfile(id="mailto:ada@example.org"),
        achievement=achievement,
        valid_from="2024-06-01T00:00:00Z",
    )


@pytest.fixture
def credential_dict_config() -> dict:
    """The same shape as credential_config, in camelCase JSON form."""
    return {
        "credentialId": "https://badges.example.org/api/badge/abc123",
        "validFrom": "2024-06-01T00:00:00Z",
        "issuer": {
            "id": "https://badges.example.org/api/badge/issuer",
            "name": "Example Conference",
            "url": "https://badges.example.org",
        },
        "subject": {"id": "mailto:ada@example.org", "type": ["AchievementSubject"]},
        "achievement": {
            "id": "https://badges.example.org/achievements/speaker-2024",
            "name": "Speaker 2024",
            "description": "Spoke at Example Conference 2024",
            "criteria": {"narrative": "Delivered an accepted talk at the conference."},
            "image": {"id": "https://badges.example.org/badges/speaker.svg"},
        },
    }


@pytest.fixture
def credential(credential_config) -> dict:
    """An unsigned credential."""
    return create_credential(credential_config)


@pytest.fixture
def signed_credential(credential, private_key_hex) -> dict:
    """A credential carrying one Data-Integrity proof."""
    return sign_credential(credential, private_key_hex, CREATED)


@pytest.fixture
def golden_credential() -> dict:
    """Credential matching the published JWT golden vector."""
    return {
        "@context": [
            "https://www.w3.org/ns/credentials/v2",
            "https://purl.imsglobal.org/spec/ob/v3p0/context-3.0.3.json",
        ],
        "id": "http://1edtech.edu/credentials/3732",
        "type": ["VerifiableCredential", "AchievementCredential"],
        "name": "Example University Degree",
        "issuer": {
            "id": "https://1edtech.edu/issuers/565049",
            "type": ["Profile"],
            "name": "Example University",
            "url": "https://1edtech.edu",
        },
        "validFrom": "2010-01-01T00:00:00Z",
        "validUntil": "2030-01-01T00:00:00Z",
        "credentialSubject": {
            "id": "did:example:ebfeb1f712ebc6f1c276e12ec21",
            "type": ["AchievementSubject"],
            "achievement": {
                "id": "https://1edtech.edu/achievements/degree",
                "type": ["Achievement"],
                "name": "Bachelor of Science",
                "description": "Awarded on completion of the degree.",
                "criteria": {"narrative": "Complete all required coursework."},
            },
        },
    }


@pytest.fixture
def base_svg() -> str:
    """A plain SVG without badge data."""
    return BASE_SVG


@pytest.fixture
def clone():
    """Deep-copy helper for tamper tests."""
    return copy.deepcopy


@pytest.fixture
def other_private_key_hex() -> str:
    """Private key of an unrelated issuer."""
    return OTHER_PRIVATE_KEY_HEX


@pytest.fixture
def created() -> str:
    """Proof creation instant used across signing tests."""
    return CREATED


@pytest.fixture
def verified_at() -> datetime:
    """Fixed verification instant inside the test credentials' validity window."""
    return VERIFIED_AT
