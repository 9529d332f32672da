# badgesmith/jwt_proof.py
"""
JWT proof format for AchievementCredentials.

The credential is flattened to the top level of the JWT payload (there is
no "vc" wrapper) and the registered claims are derived from it:

    iss  issuer id
    jti  credential id
    sub  credentialSubject id
    nbf  validFrom as unix seconds
    exp  validUntil as unix seconds (only when validUntil is present)

No "iat" claim is emitted. Signing and verification use EdDSA (Ed25519)
compact JWS via jwcrypto.
"""

import copy
import json
import logging
from typing import Any, Dict, Optional, Tuple

from jwcrypto import jwk, jws
from jwcrypto.common import JWException, base64url_decode, base64url_encode, json_encode

from badgesmith.credential import get_issuer_id, get_subject_id, to_epoch_seconds
from badgesmith.errors import MalformedInput, MalformedToken, SignatureInvalid
from badgesmith.keys import (
    derive_public_key,
    did_key_verification_method,
    normalize_key_hex,
)


logger = logging.getLogger(__name__)


JWT_ALGORITHM = "EdDSA"
JWT_TYPE = "JWT"

REGISTERED_CLAIMS = ("iss", "jti", "sub", "nbf", "exp")


def _okp_key(public_key_hex: str, private_key_hex: Optional[str] = None) -> jwk.JWK:
    """Build an Ed25519 OKP JWK from raw hex key material."""
    params = {
        "kty": "OKP",
        "crv": "Ed25519",
        "x": base64url_encode(bytes.fromhex(public_key_hex)),
    }
    if private_key_hex is not None:
        params["d"] = base64url_encode(bytes.fromhex(private_key_hex))
    return jwk.JWK(**params)


def build_claims(credential: Dict[str, Any]) -> Dict[str, Any]:
    """
    Flatten a credential into a JWT payload with registered claims.

    Raises:
        MalformedInput: If the credential lacks an id, issuer id, subject id
            or a parseable validFrom.
    """
    if not isinstance(credential, dict):
        raise MalformedInput("Credential must be an object")

    issuer_id = get_issuer_id(credential)
    subject_id = get_subject_id(credential)
    credential_id = credential.get("id")
    if not isinstance(credential_id, str) or not credential_id:
        raise MalformedInput("Credential id is required for the jti claim")
    if issuer_id is None:
        raise MalformedInput("Issuer id is required for the iss claim")
    if subject_id is None:
        raise MalformedInput("credentialSubject id is required for the sub claim")

    try:
        not_before = to_epoch_seconds(credential.get("validFrom"))
        expires = to_epoch_seconds(credential["validUntil"]) if credential.get("validUntil") else None
    except ValueError as e:
        raise MalformedInput(f"Invalid credential validity window: {e}") from None

    payload = {k: copy.deepcopy(v) for k, v in credential.items() if k != "proof"}
    payload["iss"] = issuer_id
    payload["jti"] = credential_id
    payload["sub"] = subject_id
    payload["nbf"] = not_before
    if expires is not None:
        payload["exp"] = expires
    return payload


def sign_credential_jwt(
    credential: Dict[str, Any],
    private_key_hex: str,
    verification_method: Optional[str] = None,
) -> str:
    """
    Sign a credential as a compact JWT.

    Args:
        credential: Credential dict. Any embedded proof is left out of the
            token; the signature lives in the token itself.
        private_key_hex: Ed25519 private key (hex).
        verification_method: Value for the "kid" header. Defaults to the
            did:key verification method of the signing key.

    Returns:
        Compact serialization "header.payload.signature".

    Raises:
        InvalidKeyMaterial: If the private key is malformed.
        MalformedInput: If required credential fields are missing.
    """
    public_hex = derive_public_key(private_key_hex)
    kid = verification_method or did_key_verification_method(public_hex)

    claims = build_claims(credential)
    header = {"alg": JWT_ALGORITHM, "typ": JWT_TYPE, "kid": kid}

    token = jws.JWS(json.dumps(claims, separators=(",", ":"), ensure_ascii=False).encode("utf-8"))
    token.add_signature(
        _okp_key(public_hex, normalize_key_hex(private_key_hex, "Private key")),
        None,
        json_encode(header),
        None,
    )
    logger.debug(f"Issued JWT credential {claims['jti']} with kid {kid}")
    return token.serialize(compact=True)


def decode_jwt_unverified(token: Any) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Decode header and payload without checking the signature.

    Returns:
        Tuple of (header, payload)

    Raises:
        MalformedToken: Unless the token has exactly three segments whose
            first two decode to JSON objects.
    """
    if not isinstance(token, str):
        raise MalformedToken("Token must be a string")

    parts = token.strip().split(".")
    if len(parts) != 3:
        raise MalformedToken("Token must have exactly 3 parts", {"parts": len(parts)})

    try:
        header = json.loads(base64url_decode(parts[0]))
        payload = json.loads(base64url_decode(parts[1]))
    except ValueError:
        raise MalformedToken("Token header or payload is not base64url JSON") from None

    if not isinstance(header, dict) or not isinstance(payload, dict):
        raise MalformedToken("Token header and payload must be JSON objects")

    return header, payload


def credential_from_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Rebuild the credential from a JWT payload by dropping registered claims."""
    return {k: copy.deepcopy(v) for k, v in payload.items() if k not in REGISTERED_CLAIMS}


def verify_credential_jwt(token: str, public_key_hex: str) -> Dict[str, Any]:
    """
    Verify a compact JWT credential and return the credential it carries.

    Args:
        token: Compact JWT.
        public_key_hex: Trusted Ed25519 public key (hex).

    Returns:
        Credential dict with the registered claims removed.

    Raises:
        InvalidKeyMaterial: If the public key is malformed.
        MalformedToken: If the token framing is invalid.
        SignatureInvalid: If the signature does not verify.
    """
    public_hex = normalize_key_hex(public_key_hex, "Public key")
    header, payload = decode_jwt_unverified(token)

    if header.get("alg") != JWT_ALGORITHM:
        raise MalformedToken("Unsupported JWT algorithm", {"alg": header.get("alg")})

    jws_token = jws.JWS()
    try:
        jws_token.deserialize(token.strip())
    except JWException:
        raise MalformedToken("Token is not a valid compact JWS") from None

    try:
        jws_token.verify(_okp_key(public_hex))
    except JWException as e:
        logger.debug(f"JWT signature verification failed: {e}")
        raise SignatureInvalid("JWT signature verification failed", {"kid": header.get("kid")}) from None

    return credential_from_payload(payload)
