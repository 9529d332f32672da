"""Pydantic schema for OpenBadges 3.0 AchievementCredentials."""

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from badgesmith.credential import (
    ACHIEVEMENT_CREDENTIAL_TYPE,
    ACHIEVEMENT_SUBJECT_TYPE,
    OPENBADGES_V3_CONTEXT,
    VERIFIABLE_CREDENTIAL_TYPE,
    is_url,
    parse_instant,
)


def _as_type_list(value: Any) -> Any:
    return [value] if isinstance(value, str) else value


def _require_type(types: List[str], required: str) -> List[str]:
    if required not in types:
        raise ValueError(f"type must include {required}")
    return types


def _require_uri(value: Optional[str]) -> Optional[str]:
    if value is not None and not is_url(value):
        raise ValueError("must be a URI")
    return value


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


class _TypedNode(BaseModel):
    """Accepts a bare string wherever a type list is expected."""

    @field_validator("type", mode="before", check_fields=False)
    @classmethod
    def _type_as_list(cls, v: Any) -> Any:
        return _as_type_list(v)


class Image(BaseModel):
    id: str
    type: str
    caption: Optional[str] = None

    model_config = ConfigDict(extra="allow")

    @field_validator("id")
    @classmethod
    def _id_is_uri(cls, v: str) -> str:
        return _require_uri(v)

    @field_validator("type")
    @classmethod
    def _type_is_image(cls, v: str) -> str:
        if v != "Image":
            raise ValueError('type must be "Image"')
        return v


class Profile(_TypedNode):
    """Issuer or creator profile."""

    id: str
    type: List[str]
    name: Optional[str] = None
    url: Optional[str] = None
    email: Optional[str] = None
    description: Optional[str] = None
    image: Optional[Image] = None

    model_config = ConfigDict(extra="allow")

    @field_validator("type")
    @classmethod
    def _type_is_profile(cls, v: List[str]) -> List[str]:
        return _require_type(v, "Profile")


class Criteria(BaseModel):
    id: Optional[str] = None
    narrative: Optional[str] = None

    model_config = ConfigDict(extra="allow")

    @field_validator("id")
    @classmethod
    def _id_is_uri(cls, v: Optional[str]) -> Optional[str]:
        return _require_uri(v)


class Evidence(_TypedNode):
    id: Optional[str] = None
    type: List[str]
    name: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class Achievement(_TypedNode):
    """Achievement definition. The issuing profile appears as ``creator``."""

    id: str
    type: List[str]
    name: str
    description: Optional[str] = None
    criteria: Criteria
    image: Optional[Image] = None
    creator: Optional[Union[Profile, str]] = None
    evidence: Optional[List[Evidence]] = None

    model_config = ConfigDict(extra="allow")

    @model_validator(mode="before")
    @classmethod
    def _creator_not_issuer(cls, data: Any) -> Any:
        if isinstance(data, dict) and "issuer" in data:
            raise ValueError('achievement must use "creator", not "issuer"')
        return data

    @field_validator("id")
    @classmethod
    def _id_is_uri(cls, v: str) -> str:
        return _require_uri(v)

    @field_validator("type")
    @classmethod
    def _type_is_achievement(cls, v: List[str]) -> List[str]:
        return _require_type(v, "Achievement")


class AchievementSubject(_TypedNode):
    id: Optional[str] = None
    type: List[str]
    achievement: Achievement

    model_config = ConfigDict(extra="allow")

    @field_validator("type")
    @classmethod
    def _type_is_subject(cls, v: List[str]) -> List[str]:
        return _require_type(v, ACHIEVEMENT_SUBJECT_TYPE)


# ---------------------------------------------------------------------------
# AchievementCredential
# ---------------------------------------------------------------------------


class AchievementCredential(BaseModel):
    """OpenBadges 3.0 AchievementCredential (W3C VC Data Model 2.0)."""

    context: List[str] = Field(alias="@context", min_length=2)
    id: Optional[str] = None
    type: List[str] = Field(min_length=2)
    name: Optional[str] = None
    credential_subject: AchievementSubject = Field(alias="credentialSubject")
    issuer: Union[Profile, str]
    valid_from: str = Field(alias="validFrom")
    valid_until: Optional[str] = Field(default=None, alias="validUntil")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    @field_validator("context")
    @classmethod
    def _has_openbadges_context(cls, v: List[str]) -> List[str]:
        if OPENBADGES_V3_CONTEXT not in v:
            raise ValueError(f"must include {OPENBADGES_V3_CONTEXT}")
        return v

    @field_validator("id")
    @classmethod
    def _id_is_uri(cls, v: Optional[str]) -> Optional[str]:
        return _require_uri(v)

    @field_validator("type")
    @classmethod
    def _has_credential_types(cls, v: List[str]) -> List[str]:
        _require_type(v, VERIFIABLE_CREDENTIAL_TYPE)
        return _require_type(v, ACHIEVEMENT_CREDENTIAL_TYPE)

    @field_validator("valid_from", "valid_until")
    @classmethod
    def _is_instant(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            parse_instant(v)
        return v


def format_errors(exc: ValidationError) -> List[str]:
    """Flatten pydantic errors to "location: message" strings."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "credential"
        messages.append(f"{location}: {error['msg']}")
    return messages


def validate_schema(value: Any) -> List[str]:
    """
    Check a credential against the full AchievementCredential schema.

    Returns:
        List of error strings; empty when the credential conforms.
    """
    if not isinstance(value, dict):
        return ["credential: must be an object"]
    try:
        AchievementCredential.model_validate(value)
    except ValidationError as e:
        return format_errors(e)
    return []
