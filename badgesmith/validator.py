# badgesmith/validator.py
"""
Structural validation for AchievementCredentials.

Validators never raise for data-quality problems: they return a
ValidationResult that accumulates every violation, in a fixed order, as
human-readable, field-named messages.
"""

import re
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from badgesmith.credential import ACHIEVEMENT_CREDENTIAL_TYPE, VERIFIABLE_CREDENTIAL_TYPE
from badgesmith.data_integrity import CRYPTOSUITE, PROOF_PURPOSE, PROOF_TYPE
from badgesmith.errors import MalformedInput, ValidationFailed


logger = logging.getLogger(__name__)


_MULTIBASE_BASE58 = re.compile(r"z[1-9A-HJ-NP-Za-km-z]+")
_BASE64 = re.compile(r"[A-Za-z0-9+/_-]+={0,2}")


@dataclass
class ValidationResult:
    """Outcome of a structural validation."""

    valid: bool
    """True when no rule was violated."""

    errors: List[str] = field(default_factory=list)
    """Every violated rule, in check order."""

    @classmethod
    def from_errors(cls, errors: List[str]) -> "ValidationResult":
        return cls(valid=not errors, errors=list(errors))

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors)}

    def raise_if_invalid(self) -> None:
        """
        Raises:
            ValidationFailed: Carrying all errors, if any rule was violated.
        """
        if not self.valid:
            raise ValidationFailed(self.errors)


def validate_credential(value: Any) -> ValidationResult:
    """
    Validate the top-level shape of a credential.

    Checks, in order: object, @context, id, type (and each required type
    entry), credentialSubject, issuer, validFrom.

    Args:
        value: Any parsed JSON value.

    Returns:
        ValidationResult listing every violation.
    """
    if not isinstance(value, dict):
        return ValidationResult.from_errors(["Badge assertion must be an object"])

    errors: List[str] = []

    if not isinstance(value.get("@context"), list) or not value["@context"]:
        errors.append("Missing or invalid @context")

    if not isinstance(value.get("id"), str) or not value["id"]:
        errors.append("Missing or invalid id")

    types = value.get("type")
    if not isinstance(types, list):
        errors.append("Missing or invalid type")
        types = []
    if VERIFIABLE_CREDENTIAL_TYPE not in types:
        errors.append(f"Type must include {VERIFIABLE_CREDENTIAL_TYPE}")
    if ACHIEVEMENT_CREDENTIAL_TYPE not in types:
        errors.append(f"Type must include {ACHIEVEMENT_CREDENTIAL_TYPE}")

    if not isinstance(value.get("credentialSubject"), dict):
        errors.append("Missing or invalid credentialSubject")

    issuer = value.get("issuer")
    if not (isinstance(issuer, dict) or (isinstance(issuer, str) and issuer)):
        errors.append("Missing or invalid issuer")

    if not isinstance(value.get("validFrom"), str) or not value["validFrom"]:
        errors.append("Missing or invalid validFrom")

    return ValidationResult.from_errors(errors)


def validate_proof(proof: Any) -> ValidationResult:
    """
    Validate a Data-Integrity proof object.

    Checks, in order: object, type, cryptosuite, proofPurpose, proofValue,
    verificationMethod.
    """
    if not isinstance(proof, dict):
        return ValidationResult.from_errors(["Proof must be an object"])

    errors: List[str] = []
    if proof.get("type") != PROOF_TYPE:
        errors.append(f"Proof type must be {PROOF_TYPE}")
    if proof.get("cryptosuite") != CRYPTOSUITE:
        errors.append(f"Proof cryptosuite must be {CRYPTOSUITE}")
    if proof.get("proofPurpose") != PROOF_PURPOSE:
        errors.append(f"Proof proofPurpose must be {PROOF_PURPOSE}")
    if not isinstance(proof.get("proofValue"), str) or not proof["proofValue"]:
        errors.append("Proof is missing proofValue")
    if not isinstance(proof.get("verificationMethod"), str) or not proof["verificationMethod"]:
        errors.append("Proof is missing verificationMethod")

    return ValidationResult.from_errors(errors)


# =============================================================================
# Input Helpers
# =============================================================================

def parse_badge_json(text: Any) -> Dict[str, Any]:
    """
    Parse credential JSON text.

    Raises:
        MalformedInput: If the text is not JSON or not a JSON object.
    """
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    if not isinstance(text, str):
        raise MalformedInput("Badge JSON must be a string")
    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedInput(f"Invalid JSON: {e.msg}", {"line": e.lineno, "column": e.colno}) from None
    if not isinstance(value, dict):
        raise MalformedInput("Badge JSON must be an object")
    return value


def is_multibase_proof(value: Any) -> bool:
    """True for base58btc multibase values ("z..."), as used by eddsa-rdfc-2022."""
    return isinstance(value, str) and bool(_MULTIBASE_BASE58.fullmatch(value))


def is_base64_proof(value: Any) -> bool:
    """True for base64 or base64url values (legacy signature encodings)."""
    return isinstance(value, str) and not is_multibase_proof(value) and bool(_BASE64.fullmatch(value))
