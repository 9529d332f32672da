# badgesmith/errors.py
"""
Error taxonomy for the badge engine.

Low-level engines (keys, Data-Integrity, JWT) raise these for genuinely
exceptional input. The validator, baking extraction and the verification
orchestrator never raise them to their callers for data-quality problems;
they return structured results instead.

None of these exceptions may carry key material in their message or context.
"""

from typing import Any, Dict, List, Optional


class BadgeError(Exception):
    """Base class for all badge engine errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ConfigurationError(BadgeError, ValueError):
    """A builder or environment configuration value is missing or invalid."""


class InvalidKeyMaterial(BadgeError, ValueError):
    """Key hex is malformed, the wrong length, or not paired as claimed."""


class MalformedInput(BadgeError, ValueError):
    """Input could not be parsed (JSON, proof framing, multibase)."""


class MalformedToken(MalformedInput):
    """A compact JWT does not have three decodable segments."""


class SignatureInvalid(BadgeError):
    """A well-formed signature did not verify against the supplied key."""


class ValidationFailed(BadgeError):
    """Structural rules were violated. All violations are in ``errors``."""

    def __init__(self, errors: List[str], message: str = "Credential failed validation"):
        super().__init__(message, {"errors": list(errors)})
        self.errors = list(errors)

    def __str__(self) -> str:
        return f"{self.message}: {'; '.join(self.errors)}"


class CodecMismatch(BadgeError):
    """An SVG does not carry a badge element in the expected format."""


class BakingError(BadgeError):
    """A credential could not be embedded into an SVG."""
