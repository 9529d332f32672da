# badgesmith/credential.py
"""
OpenBadges 3.0 AchievementCredential model and builder.

The builder is a pure function: every timestamp is a caller-supplied
ISO-8601 string and nothing here reads the clock. The result is a plain
JSON-compatible dict, ready for either proof engine.

Usage:
    config = CredentialConfig(
        credential_id="https://example.org/credentials/1",
        issuer=IssuerProfileConfig(id=..., name=..., url=...),
        subject=SubjectProfile(id="mailto:ada@example.org"),
        achievement=AchievementConfig(...),
        valid_from="2025-01-01T00:00:00Z",
    )
    credential = create_credential(config)
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from badgesmith.errors import ConfigurationError


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

CREDENTIALS_V2_CONTEXT = "https://www.w3.org/ns/credentials/v2"
OPENBADGES_V3_CONTEXT = "https://purl.imsglobal.org/spec/ob/v3p0/context-3.0.3.json"

CREDENTIAL_CONTEXT = (CREDENTIALS_V2_CONTEXT, OPENBADGES_V3_CONTEXT)

VERIFIABLE_CREDENTIAL_TYPE = "VerifiableCredential"
ACHIEVEMENT_CREDENTIAL_TYPE = "AchievementCredential"
CREDENTIAL_TYPE = (VERIFIABLE_CREDENTIAL_TYPE, ACHIEVEMENT_CREDENTIAL_TYPE)

ACHIEVEMENT_SUBJECT_TYPE = "AchievementSubject"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# =============================================================================
# Instants
# =============================================================================

def parse_instant(value: Any) -> datetime:
    """
    Parse a timezone-qualified ISO-8601 instant.

    Accepts a trailing "Z" for UTC.

    Raises:
        ValueError: If the value is not a string, not ISO-8601, or has no zone.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Timestamp must be a non-empty ISO-8601 string")

    text = value.strip()
    if text[-1] in ("Z", "z"):
        text = text[:-1] + "+00:00"

    try:
        instant = datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Invalid ISO-8601 timestamp: {value!r}") from None

    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValueError(f"Timestamp must be timezone-qualified: {value!r}")

    return instant


def to_epoch_seconds(value: Any) -> int:
    """
    Convert an ISO-8601 instant to unix seconds.

    The millisecond epoch is floor-divided by 1000, so sub-second parts are
    truncated towards negative infinity.

    Example:
        >>> to_epoch_seconds("2010-01-01T00:00:00Z")
        1262304000
    """
    millis = (parse_instant(value) - _EPOCH) // timedelta(milliseconds=1)
    return millis // 1000


def format_instant(instant: datetime) -> str:
    """Render an aware datetime as UTC with millisecond precision, e.g. 2025-01-01T00:00:00.000Z."""
    if instant.tzinfo is None:
        raise ValueError("Datetime must be timezone-aware")
    utc = instant.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


# =============================================================================
# Configuration Data Classes
# =============================================================================

@dataclass
class ImageConfig:
    """Image reference (issuer logo or achievement artwork)."""
    id: str
    caption: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["ImageConfig"]:
        if not data:
            return None
        return cls(id=data.get("id"), caption=data.get("caption"))


@dataclass
class IssuerProfileConfig:
    """Issuer identity. Rendered as a Profile on the credential and as the achievement creator."""
    id: str
    name: str
    url: str
    email: Optional[str] = None
    description: Optional[str] = None
    image: Optional[ImageConfig] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IssuerProfileConfig":
        data = data or {}
        image = data.get("image")
        if isinstance(image, str):
            image = {"id": image}
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            url=data.get("url"),
            email=data.get("email"),
            description=data.get("description"),
            image=ImageConfig.from_dict(image),
        )


@dataclass
class CriteriaConfig:
    narrative: str
    id: Optional[str] = None


@dataclass
class EvidenceConfig:
    """A single evidence entry attached to the achievement."""
    id: str
    name: str
    type: List[str] = field(default_factory=lambda: ["Evidence"])
    description: Optional[str] = None
    narrative: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "type": list(self.type), "name": self.name}
        if self.description:
            data["description"] = self.description
        if self.narrative:
            data["narrative"] = self.narrative
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EvidenceConfig":
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            type=data.get("type", ["Evidence"]),
            description=data.get("description"),
            narrative=data.get("narrative"),
        )


@dataclass
class AchievementConfig:
    """What was achieved: identity, artwork, criteria and evidence."""
    id: str
    name: str
    description: str
    criteria: CriteriaConfig
    image: ImageConfig
    evidence: List[EvidenceConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AchievementConfig":
        data = data or {}
        criteria = data.get("criteria") or {}
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            description=data.get("description"),
            criteria=CriteriaConfig(narrative=criteria.get("narrative"), id=criteria.get("id")),
            image=ImageConfig.from_dict(data.get("image")),
            evidence=[EvidenceConfig.from_dict(e) for e in data.get("evidence") or []],
        )


@dataclass
class SubjectProfile:
    """The credential holder (e.g. a mailto: URI or a DID)."""
    id: str
    type: List[str] = field(default_factory=lambda: [ACHIEVEMENT_SUBJECT_TYPE])


@dataclass
class CredentialConfig:
    """Everything the builder needs to produce an unsigned credential."""
    credential_id: str
    issuer: IssuerProfileConfig
    subject: SubjectProfile
    achievement: AchievementConfig
    valid_from: str
    valid_until: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CredentialConfig":
        """Build from the camelCase JSON shape used by callers and the CLI."""
        subject = data.get("subject") or {}
        return cls(
            credential_id=data.get("credentialId"),
            issuer=IssuerProfileConfig.from_dict(data.get("issuer")),
            subject=SubjectProfile(
                id=subject.get("id"),
                type=subject.get("type", [ACHIEVEMENT_SUBJECT_TYPE]),
            ),
            achievement=AchievementConfig.from_dict(data.get("achievement")),
            valid_from=data.get("validFrom"),
            valid_until=data.get("validUntil"),
            name=data.get("name"),
        )


# =============================================================================
# Configuration Validation
# =============================================================================

def is_url(value: Any) -> bool:
    """True for absolute URIs with a scheme (https:, mailto:, did:, urn:) and no whitespace."""
    if not isinstance(value, str) or not value or any(ch.isspace() for ch in value):
        return False
    parsed = urlparse(value)
    return bool(parsed.scheme) and bool(parsed.netloc or parsed.path)


def _require_text(value: Any, message: str, field_name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(message, {"field": field_name})


def _require_url(value: Any, label: str, field_name: str) -> None:
    _require_text(value, f"{label} is required", field_name)
    if value.startswith("_:"):
        # blank node labels do not survive canonicalization
        raise ConfigurationError(f"{label} must be an IRI, not a blank node", {"field": field_name})
    if not is_url(value):
        raise ConfigurationError(f"{label} must be a valid URL", {"field": field_name, "value": value})


def _require_instant(value: Any, field_name: str) -> None:
    try:
        parse_instant(value)
    except ValueError as e:
        raise ConfigurationError(
            f"{field_name} must be a valid timezone-qualified ISO 8601 timestamp",
            {"field": field_name, "reason": str(e)},
        ) from None


def _validate_issuer(config: IssuerProfileConfig) -> None:
    if config is None:
        raise ConfigurationError("Issuer is required", {"field": "issuer"})
    _require_url(config.id, "Issuer ID", "issuer.id")
    _require_text(config.name, "Issuer name is required", "issuer.name")
    _require_url(config.url, "Issuer URL", "issuer.url")
    if config.email is not None and not isinstance(config.email, str):
        raise ConfigurationError("Issuer email must be a string", {"field": "issuer.email"})
    if config.image is not None:
        _require_url(config.image.id, "Issuer image ID", "issuer.image.id")


def _validate_achievement(config: AchievementConfig) -> None:
    if config is None:
        raise ConfigurationError("Achievement is required", {"field": "achievement"})
    _require_url(config.id, "Achievement ID", "achievement.id")
    _require_text(config.name, "Achievement name is required", "achievement.name")
    _require_text(config.description, "Achievement description is required", "achievement.description")

    narrative = config.criteria.narrative if config.criteria else None
    _require_text(narrative, "Achievement criteria narrative is required", "achievement.criteria.narrative")
    if config.criteria.id is not None:
        _require_url(config.criteria.id, "Achievement criteria ID", "achievement.criteria.id")

    if config.image is None:
        raise ConfigurationError("Achievement image is required", {"field": "achievement.image"})
    _require_url(config.image.id, "Achievement image ID", "achievement.image.id")

    for index, evidence in enumerate(config.evidence or []):
        prefix = f"achievement.evidence[{index}]"
        _require_url(evidence.id, f"Evidence[{index}] ID", f"{prefix}.id")
        if not isinstance(evidence.type, list) or not evidence.type:
            raise ConfigurationError(f"Evidence[{index}] type array is required", {"field": f"{prefix}.type"})
        _require_text(evidence.name, f"Evidence[{index}] name is required", f"{prefix}.name")


def _validate_subject(config: SubjectProfile) -> None:
    if config is None:
        raise ConfigurationError("Subject is required", {"field": "subject"})
    _require_url(config.id, "Subject ID", "subject.id")
    if not isinstance(config.type, list) or not config.type:
        raise ConfigurationError("Subject type array is required", {"field": "subject.type"})
    if ACHIEVEMENT_SUBJECT_TYPE not in config.type:
        raise ConfigurationError(
            f'Subject type must include "{ACHIEVEMENT_SUBJECT_TYPE}"',
            {"field": "subject.type", "value": config.type},
        )


def validate_credential_config(config: CredentialConfig) -> None:
    """
    Validate a builder configuration.

    Raises:
        ConfigurationError: On the first invalid field, naming it in the context.
    """
    _require_url(config.credential_id, "Credential ID", "credentialId")
    _require_text(config.valid_from, "validFrom timestamp is required", "validFrom")
    _require_instant(config.valid_from, "validFrom")
    if config.valid_until is not None:
        _require_instant(config.valid_until, "validUntil")
    if config.name is not None:
        _require_text(config.name, "Credential name must not be empty", "name")

    _validate_issuer(config.issuer)
    _validate_subject(config.subject)
    _validate_achievement(config.achievement)


# =============================================================================
# Builder
# =============================================================================

def build_issuer_profile(config: IssuerProfileConfig) -> Dict[str, Any]:
    profile: Dict[str, Any] = {
        "id": config.id,
        "type": ["Profile"],
        "name": config.name,
        "url": config.url,
    }
    if config.email:
        profile["email"] = config.email
    if config.description:
        profile["description"] = config.description
    if config.image:
        profile["image"] = {"id": config.image.id, "type": "Image"}
    return profile


def build_achievement(config: AchievementConfig, issuer: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the achievement object.

    The issuing organisation is attached as "creator". OpenBadges 3.0 does
    not define "issuer" on an Achievement and validators reject it.
    """
    criteria: Dict[str, Any] = {"narrative": config.criteria.narrative}
    if config.criteria.id:
        criteria["id"] = config.criteria.id

    image: Dict[str, Any] = {"id": config.image.id, "type": "Image"}
    if config.image.caption:
        image["caption"] = config.image.caption

    achievement: Dict[str, Any] = {
        "id": config.id,
        "type": ["Achievement"],
        "name": config.name,
        "description": config.description,
        "criteria": criteria,
        "image": image,
        "creator": copy.deepcopy(issuer),
    }
    if config.evidence:
        achievement["evidence"] = [e.to_dict() for e in config.evidence]
    return achievement


def create_credential(config: CredentialConfig) -> Dict[str, Any]:
    """
    Build an unsigned AchievementCredential.

    Args:
        config: Credential configuration. All timestamps are caller-supplied.

    Returns:
        Credential dict with both contexts and both types in fixed order.

    Raises:
        ConfigurationError: If the configuration is incomplete or invalid.
    """
    validate_credential_config(config)

    issuer = build_issuer_profile(config.issuer)
    achievement = build_achievement(config.achievement, issuer)

    credential: Dict[str, Any] = {
        "@context": list(CREDENTIAL_CONTEXT),
        "id": config.credential_id,
        "type": list(CREDENTIAL_TYPE),
        "name": config.name or config.achievement.name,
        "credentialSubject": {
            "id": config.subject.id,
            "type": list(config.subject.type),
            "achievement": achievement,
        },
        "issuer": issuer,
        "validFrom": config.valid_from,
    }
    if config.valid_until:
        credential["validUntil"] = config.valid_until

    logger.debug(f"Built credential {config.credential_id}")
    return credential


# =============================================================================
# Proof Accessors
# =============================================================================

def get_proofs(credential: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Normalize the proof member to a list.

    An absent proof or an empty array yields []. A single proof object
    yields a one-element list.
    """
    proof = credential.get("proof") if isinstance(credential, dict) else None
    if proof is None:
        return []
    if isinstance(proof, list):
        return list(proof)
    return [proof]


def first_proof(credential: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Return the first proof, or None when the credential is unsigned."""
    proofs = get_proofs(credential)
    return proofs[0] if proofs else None


def strip_proof(credential: Dict[str, Any]) -> Dict[str, Any]:
    """Return a deep copy of the credential without its proof member."""
    return {k: copy.deepcopy(v) for k, v in credential.items() if k != "proof"}


def get_issuer_id(credential: Dict[str, Any]) -> Optional[str]:
    """Issuer id whether the issuer is embedded as a profile or given as a string."""
    issuer = credential.get("issuer")
    if isinstance(issuer, dict):
        issuer = issuer.get("id")
    return issuer if isinstance(issuer, str) else None


def get_subject_id(credential: Dict[str, Any]) -> Optional[str]:
    subject = credential.get("credentialSubject")
    if isinstance(subject, list):
        subject = subject[0] if subject else None
    if isinstance(subject, dict) and isinstance(subject.get("id"), str):
        return subject["id"]
    return None
