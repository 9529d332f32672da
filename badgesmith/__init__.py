"""
badgesmith - OpenBadges 3.0 verifiable credential engine.

Builds AchievementCredentials, signs them with embedded Data-Integrity
proofs (eddsa-rdfc-2022) or as EdDSA JWTs, bakes them into SVG images and
verifies any of those forms into an itemized report.
"""

__version__ = "0.4.0"

# Errors
from .errors import (
    BadgeError,
    BakingError,
    CodecMismatch,
    ConfigurationError,
    InvalidKeyMaterial,
    MalformedInput,
    MalformedToken,
    SignatureInvalid,
    ValidationFailed,
)

# Keys and did:key
from .keys import (
    KeyPair,
    derive_public_key,
    did_key_from_public_key,
    did_key_to_public_key_hex,
    generate_keypair,
    verification_method,
)

# Credential model
from .credential import (
    AchievementConfig,
    CredentialConfig,
    CriteriaConfig,
    EvidenceConfig,
    ImageConfig,
    IssuerProfileConfig,
    SubjectProfile,
    create_credential,
    first_proof,
)

# Proof engines
from .data_integrity import canonicalize, sign_credential, verify_credential
from .jwt_proof import sign_credential_jwt, verify_credential_jwt

# Validation, baking, verification
from .validator import ValidationResult, validate_credential, validate_proof
from .baking import BakeFormat, ExtractedBadge, bake_svg, extract_from_svg
from .schema import AchievementCredential, validate_schema
from .verification import CheckStatus, VerificationReport, verify_badge


__all__ = [
    "__version__",
    # Errors
    "BadgeError",
    "BakingError",
    "CodecMismatch",
    "ConfigurationError",
    "InvalidKeyMaterial",
    "MalformedInput",
    "MalformedToken",
    "SignatureInvalid",
    "ValidationFailed",
    # Keys
    "KeyPair",
    "derive_public_key",
    "did_key_from_public_key",
    "did_key_to_public_key_hex",
    "generate_keypair",
    "verification_method",
    # Credential model
    "AchievementConfig",
    "CredentialConfig",
    "CriteriaConfig",
    "EvidenceConfig",
    "ImageConfig",
    "IssuerProfileConfig",
    "SubjectProfile",
    "create_credential",
    "first_proof",
    # Proofs
    "canonicalize",
    "sign_credential",
    "verify_credential",
    "sign_credential_jwt",
    "verify_credential_jwt",
    # Validation
    "ValidationResult",
    "validate_credential",
    "validate_proof",
    # Baking
    "BakeFormat",
    "ExtractedBadge",
    "bake_svg",
    "extract_from_svg",
    # Verification
    "CheckStatus",
    "VerificationReport",
    "verify_badge",
    # Schema
    "validate_schema",
    "AchievementCredential",
]
