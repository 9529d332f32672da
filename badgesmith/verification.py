"""
Badge verification - one pass/fail report for any badge artifact.

The orchestrator accepts a credential in whatever form a holder presents it
(a parsed dict, JSON text, a compact JWT, or a baked SVG) and runs:

    parse -> schema -> proof -> validity

Each stage becomes one itemized check. When a stage fails, every later
stage is reported as skipped. Data-quality problems never raise; the caller
always gets a VerificationReport it can render.

This is the only place that may read the wall clock, and only when the
caller does not pass ``verified_at``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from badgesmith.baking import extract_from_svg
from badgesmith.credential import (
    format_instant,
    get_issuer_id,
    get_proofs,
    parse_instant,
)
from badgesmith.data_integrity import verify_credential
from badgesmith.errors import BadgeError, MalformedInput, SignatureInvalid
from badgesmith.jwt_proof import credential_from_payload, decode_jwt_unverified, verify_credential_jwt
from badgesmith.keys import did_key_to_public_key_hex, is_did_key, normalize_key_hex
from badgesmith.schema import validate_schema
from badgesmith.validator import parse_badge_json, validate_credential, validate_proof


logger = logging.getLogger(__name__)


STAGES = ("parse", "schema", "proof", "validity")


# =============================================================================
# Data Classes
# =============================================================================


class CheckStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


@dataclass
class VerificationCheck:
    """One itemized stage of a verification."""

    name: str
    """Stage name: parse, schema, proof or validity."""

    status: CheckStatus
    """Outcome of the stage."""

    details: Optional[Dict[str, Any]] = None
    """Stage-specific facts, e.g. ``signatureValid`` or the error list."""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "status": self.status.value}
        if self.details is not None:
            data["details"] = self.details
        return data


@dataclass
class VerificationReport:
    """Externally consumable verification outcome."""

    valid: bool
    """True only when every check succeeded."""

    verified_at: str
    """ISO-8601 instant the verification was performed at."""

    checks: List[VerificationCheck] = field(default_factory=list)
    """Checks in pipeline order."""

    def check(self, name: str) -> Optional[VerificationCheck]:
        return next((c for c in self.checks if c.name == name), None)

    @property
    def errors(self) -> List[str]:
        """Reasons collected from failed checks."""
        reasons: List[str] = []
        for c in self.checks:
            if c.status is CheckStatus.FAILURE and c.details:
                reasons.extend(c.details.get("errors", []))
                if "error" in c.details:
                    reasons.append(c.details["error"])
        return reasons

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "checks": [c.to_dict() for c in self.checks],
            "verifiedAt": self.verified_at,
        }


@dataclass
class ParsedBadge:
    """A badge reduced to its credential, plus the JWT when it came as one."""

    credential: Dict[str, Any]
    source: str
    token: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


def _failure(name: str, error: str, **details: Any) -> VerificationCheck:
    return VerificationCheck(name, CheckStatus.FAILURE, {"error": error, **details})


# =============================================================================
# Stages
# =============================================================================


def _from_token(token: str, details: Dict[str, Any]) -> ParsedBadge:
    header, payload = decode_jwt_unverified(token)
    details = {**details, "kid": header.get("kid")}
    return ParsedBadge(credential_from_payload(payload), "jwt", token=token, details=details)


def _parse(badge: Any) -> ParsedBadge:
    """
    Raises:
        MalformedInput: If the input cannot be reduced to a credential.
    """
    if isinstance(badge, dict):
        return ParsedBadge(badge, "object")

    if isinstance(badge, bytes):
        try:
            badge = badge.decode("utf-8")
        except UnicodeDecodeError:
            raise MalformedInput("Badge bytes are not UTF-8") from None

    if not isinstance(badge, str) or not badge.strip():
        raise MalformedInput("Badge input must be a non-empty string, bytes or object")

    text = badge.strip()

    if text.startswith("<"):
        extracted = extract_from_svg(text)
        if not extracted.found:
            raise MalformedInput("No badge credential found in SVG")
        details = {
            "bakeFormat": extracted.format.value,
            "verificationUrl": extracted.verification_url,
        }
        if isinstance(extracted.assertion, str):
            return _from_token(extracted.assertion, {"container": "svg", **details})
        return ParsedBadge(extracted.assertion, "svg", details=details)

    if text.startswith("{"):
        return ParsedBadge(parse_badge_json(text), "json")

    if text.count(".") == 2:
        return _from_token(text, {})

    raise MalformedInput("Unrecognized badge format (expected JSON, JWT or SVG)")


def _check_schema(credential: Dict[str, Any]) -> VerificationCheck:
    errors = validate_credential(credential).errors
    if not errors:
        errors = validate_schema(credential)
    if errors:
        return VerificationCheck("schema", CheckStatus.FAILURE, {"errors": errors})
    return VerificationCheck("schema", CheckStatus.SUCCESS)


def _resolve_key(credential: Dict[str, Any], public_key_hex: Optional[str]) -> Tuple[str, str]:
    """
    Pick the key to verify against.

    Returns:
        Tuple of (public key hex, key source)

    Raises:
        InvalidKeyMaterial: If the supplied key or the issuer did:key is malformed.
        MalformedInput: If there is no supplied key and the issuer is not a did:key.
    """
    if public_key_hex is not None:
        return normalize_key_hex(public_key_hex, "Public key"), "supplied"

    issuer_id = get_issuer_id(credential)
    if is_did_key(issuer_id):
        return did_key_to_public_key_hex(issuer_id), "issuer-did-key"

    raise MalformedInput("No public key supplied and the issuer is not a did:key")


def _check_jwt_proof(parsed: ParsedBadge, public_hex: str, key_source: str) -> VerificationCheck:
    details = {"format": "jwt", "keySource": key_source, "verificationMethod": parsed.details.get("kid")}
    try:
        verify_credential_jwt(parsed.token, public_hex)
    except SignatureInvalid as e:
        return _failure("proof", e.message, signatureValid=False, **details)
    return VerificationCheck("proof", CheckStatus.SUCCESS, {"signatureValid": True, **details})


def _check_data_integrity_proof(credential: Dict[str, Any], public_hex: str, key_source: str) -> VerificationCheck:
    proofs = get_proofs(credential)
    if not proofs:
        return _failure("proof", "Credential has no proof", signatureValid=False, proofCount=0)

    proof = proofs[0]
    structure = validate_proof(proof)
    if not structure.valid:
        return VerificationCheck(
            "proof",
            CheckStatus.FAILURE,
            {"errors": structure.errors, "signatureValid": False, "proofCount": len(proofs)},
        )

    details = {
        "format": "data-integrity",
        "cryptosuite": proof.get("cryptosuite"),
        "verificationMethod": proof.get("verificationMethod"),
        "proofCount": len(proofs),
        # only the first proof is checked
        "proofsChecked": 1,
        "keySource": key_source,
    }
    signature_valid = verify_credential(credential, public_hex)
    if not signature_valid:
        return _failure("proof", "Signature verification failed", signatureValid=False, **details)
    return VerificationCheck("proof", CheckStatus.SUCCESS, {"signatureValid": True, **details})


def _check_proof(parsed: ParsedBadge, public_key_hex: Optional[str]) -> VerificationCheck:
    try:
        public_hex, key_source = _resolve_key(parsed.credential, public_key_hex)
        if parsed.token is not None:
            return _check_jwt_proof(parsed, public_hex, key_source)
        return _check_data_integrity_proof(parsed.credential, public_hex, key_source)
    except BadgeError as e:
        return _failure("proof", e.message, signatureValid=False)


def _check_validity(credential: Dict[str, Any], now: datetime) -> VerificationCheck:
    details = {"validFrom": credential.get("validFrom"), "validUntil": credential.get("validUntil")}
    try:
        valid_from = parse_instant(credential.get("validFrom"))
        valid_until = parse_instant(credential["validUntil"]) if credential.get("validUntil") else None
    except ValueError as e:
        return _failure("validity", str(e), **details)

    if now < valid_from:
        return _failure("validity", "Credential is not yet valid", **details)
    if valid_until is not None and now > valid_until:
        return _failure("validity", "Credential has expired", **details)
    return VerificationCheck("validity", CheckStatus.SUCCESS, details)


# =============================================================================
# Orchestrator
# =============================================================================


def verify_badge(
    badge: Any,
    public_key_hex: Optional[str] = None,
    verified_at: Optional[datetime] = None,
) -> VerificationReport:
    """
    Verify a badge and report every check.

    Args:
        badge: Credential dict, JSON text, compact JWT, or baked SVG (str or
            bytes).
        public_key_hex: Trusted issuer public key. When omitted, the key is
            resolved from the issuer's did:key if it has one.
        verified_at: Instant to evaluate the validity window at. Defaults to
            the current time.

    Returns:
        VerificationReport; never raises for bad input.
    """
    now = verified_at or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    report = VerificationReport(valid=False, verified_at=format_instant(now))

    try:
        parsed = _parse(badge)
    except MalformedInput as e:
        report.checks.append(_failure("parse", e.message))
        return _skip_remaining(report)

    parse_details = {"format": parsed.source, **parsed.details}
    report.checks.append(VerificationCheck("parse", CheckStatus.SUCCESS, parse_details))

    stages = (
        lambda: _check_schema(parsed.credential),
        lambda: _check_proof(parsed, public_key_hex),
        lambda: _check_validity(parsed.credential, now),
    )
    for name, stage in zip(STAGES[1:], stages):
        try:
            check = stage()
        except Exception as e:
            logger.exception(f"Unexpected error in {name} check")
            check = _failure(name, f"Unexpected error: {type(e).__name__}")
        report.checks.append(check)
        if check.status is CheckStatus.FAILURE:
            return _skip_remaining(report)

    report.valid = all(c.status is CheckStatus.SUCCESS for c in report.checks)
    logger.debug(f"Verified badge {parsed.credential.get('id')}: valid={report.valid}")
    return report


def _skip_remaining(report: VerificationReport) -> VerificationReport:
    done = {c.name for c in report.checks}
    for name in STAGES:
        if name not in done:
            report.checks.append(VerificationCheck(name, CheckStatus.SKIPPED))
    report.valid = False
    return report
