# badgesmith/data_integrity.py
"""
Data-Integrity proofs (eddsa-rdfc-2022) for AchievementCredentials.

Signing:
    1. Canonicalize the credential (without proof) to URDNA2015 N-Quads.
    2. Canonicalize the proof configuration (the proof without proofValue,
       under the credential's @context).
    3. Hash both with SHA-256 and concatenate: proof hash || document hash.
    4. Sign the 64 bytes with Ed25519 and multibase-encode the signature.

Verification repeats steps 1-3 over the received document and checks the
signature. Only the first proof of a multi-proof credential is checked.

Nothing in this module reads the clock; `created` is always supplied by the
caller.
"""

import re
import copy
import hashlib
import logging
from typing import Any, Dict, Optional, Tuple

import base58
from cryptography.exceptions import InvalidSignature
from pyld import jsonld

from badgesmith.contexts import pinned_document_loader
from badgesmith.credential import first_proof, get_proofs, parse_instant, strip_proof
from badgesmith.errors import MalformedInput
from badgesmith.keys import (
    MULTIBASE_BASE58BTC,
    did_key_verification_method,
    ensure_key_pair,
    load_private_key,
    load_public_key,
    normalize_key_hex,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

PROOF_TYPE = "DataIntegrityProof"
CRYPTOSUITE = "eddsa-rdfc-2022"
PROOF_PURPOSE = "assertionMethod"

SIGNATURE_LENGTH = 64


# =============================================================================
# Canonicalization
# =============================================================================

_ABSOLUTE_IRI = re.compile(r"[A-Za-z][A-Za-z0-9+.-]*:\S+")


def _node_ids(expanded: Any):
    """Yield every @id value of an expanded JSON-LD document."""
    if isinstance(expanded, dict):
        for key, value in expanded.items():
            if key == "@id" and isinstance(value, str):
                yield value
            else:
                yield from _node_ids(value)
    elif isinstance(expanded, list):
        for item in expanded:
            yield from _node_ids(item)


def canonicalize(document: Dict[str, Any]) -> str:
    """
    Canonicalize a JSON-LD document to URDNA2015 N-Quads.

    Semantically identical documents (e.g. differing only in key order)
    produce identical output. Contexts are served from the pinned set only.

    Every node identifier must be an absolute IRI. Relative or free-text
    ids are dropped when converting to RDF and blank node labels are
    renamed, so either would leave that value outside the signed bytes.

    Raises:
        MalformedInput: If the document is not an object, has a node id
            that is not an absolute IRI, or cannot be canonicalized
            (unknown context, invalid JSON-LD).
    """
    if not isinstance(document, dict):
        raise MalformedInput("Document to canonicalize must be an object")
    try:
        expanded = jsonld.expand(document, {"documentLoader": pinned_document_loader})
        unbound = [i for i in _node_ids(expanded) if not _ABSOLUTE_IRI.fullmatch(i)]
        if unbound:
            raise MalformedInput(
                "Document has node ids that are not absolute IRIs",
                {"ids": unbound[:5]},
            )
        return jsonld.normalize(
            document,
            {
                "algorithm": "URDNA2015",
                "format": "application/n-quads",
                "documentLoader": pinned_document_loader,
            },
        )
    except jsonld.JsonLdError as e:
        raise MalformedInput("Failed to canonicalize JSON-LD document", {"reason": str(e).splitlines()[0]}) from None


def proof_configuration(credential: Dict[str, Any], proof: Dict[str, Any]) -> Dict[str, Any]:
    """The proof without proofValue, under the credential's @context."""
    config = {k: copy.deepcopy(v) for k, v in proof.items() if k not in ("proofValue", "@context")}
    return {"@context": copy.deepcopy(credential.get("@context")), **config}


def hash_data(credential: Dict[str, Any], proof: Dict[str, Any]) -> bytes:
    """
    Compute the 64-byte message that is signed.

    Returns:
        sha256(canonical proof configuration) || sha256(canonical document)
    """
    unsigned = strip_proof(credential)
    canonical_proof = canonicalize(proof_configuration(unsigned, proof))
    canonical_document = canonicalize(unsigned)
    return (
        hashlib.sha256(canonical_proof.encode("utf-8")).digest()
        + hashlib.sha256(canonical_document.encode("utf-8")).digest()
    )


# =============================================================================
# Multibase Signatures
# =============================================================================

def encode_signature(signature: bytes) -> str:
    return MULTIBASE_BASE58BTC + base58.b58encode(signature).decode("ascii")


def decode_signature(proof_value: Any) -> bytes:
    """
    Decode a base58btc multibase proofValue.

    Raises:
        MalformedInput: If the value is missing, not base58btc, or not 64 bytes.
    """
    if not isinstance(proof_value, str) or not proof_value:
        raise MalformedInput("Proof is missing proofValue")
    if not proof_value.startswith(MULTIBASE_BASE58BTC):
        raise MalformedInput('proofValue must be multibase base58btc ("z" prefix)')
    try:
        signature = base58.b58decode(proof_value[1:])
    except ValueError:
        raise MalformedInput("proofValue contains invalid Base58 characters") from None
    if len(signature) != SIGNATURE_LENGTH:
        raise MalformedInput(
            "proofValue must decode to a 64-byte Ed25519 signature",
            {"length": len(signature)},
        )
    return signature


# =============================================================================
# Sign / Verify
# =============================================================================

def create_proof(
    credential: Dict[str, Any],
    private_key_hex: str,
    created: str,
    public_key_hex: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a Data-Integrity proof for an unsigned credential.

    Args:
        credential: Unsigned credential dict.
        private_key_hex: Ed25519 private key (hex).
        created: Caller-supplied ISO-8601 instant for the proof.
        public_key_hex: Optional public key; must be the one paired with the
            private key if given.

    Returns:
        Proof dict including proofValue.

    Raises:
        InvalidKeyMaterial: If the keys are malformed or not paired.
        MalformedInput: If the credential or the created instant is invalid.
    """
    if not isinstance(credential, dict):
        raise MalformedInput("Credential must be an object")
    if get_proofs(credential):
        raise MalformedInput("Credential already carries a proof")
    try:
        parse_instant(created)
    except ValueError as e:
        raise MalformedInput(f"Invalid proof created timestamp: {e}") from None

    public_hex = ensure_key_pair(private_key_hex, public_key_hex)

    proof: Dict[str, Any] = {
        "type": PROOF_TYPE,
        "created": created,
        "verificationMethod": did_key_verification_method(public_hex),
        "cryptosuite": CRYPTOSUITE,
        "proofPurpose": PROOF_PURPOSE,
    }

    signature = load_private_key(private_key_hex).sign(hash_data(credential, proof))
    proof["proofValue"] = encode_signature(signature)
    return proof


def attach_proof(credential: Dict[str, Any], proof: Dict[str, Any]) -> Dict[str, Any]:
    """Return a new credential with a single-element proof array."""
    signed = strip_proof(credential)
    signed["proof"] = [copy.deepcopy(proof)]
    return signed


def sign_credential(
    credential: Dict[str, Any],
    private_key_hex: str,
    created: str,
    public_key_hex: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Sign a credential with an embedded eddsa-rdfc-2022 proof.

    The input is never mutated; a new signed credential is returned.

    Args:
        credential: Unsigned credential dict.
        private_key_hex: Ed25519 private key (hex).
        created: Caller-supplied ISO-8601 instant.
        public_key_hex: Optional public key to cross-check against the
            private key.

    Returns:
        Signed credential with ``proof`` as a one-element list.

    Raises:
        InvalidKeyMaterial: If key material is malformed or mismatched.
        MalformedInput: If the credential is not signable.
    """
    proof = create_proof(credential, private_key_hex, created, public_key_hex)
    logger.debug(f"Signed credential {credential.get('id')} with {proof['verificationMethod']}")
    return attach_proof(credential, proof)


def _checked_proof(credential: Dict[str, Any]) -> Tuple[Dict[str, Any], bytes]:
    if not isinstance(credential, dict):
        raise MalformedInput("Credential must be an object")

    proof = first_proof(credential)
    if proof is None:
        raise MalformedInput("Credential must have at least one proof")
    if not isinstance(proof, dict):
        raise MalformedInput("Proof must be an object")
    if proof.get("type") != PROOF_TYPE:
        raise MalformedInput("Unsupported proof type", {"proofType": proof.get("type"), "expected": PROOF_TYPE})
    if proof.get("cryptosuite") != CRYPTOSUITE:
        raise MalformedInput(
            "Unsupported cryptosuite",
            {"cryptosuite": proof.get("cryptosuite"), "expected": CRYPTOSUITE},
        )

    return proof, decode_signature(proof.get("proofValue"))


def verify_credential(credential: Dict[str, Any], public_key_hex: str) -> bool:
    """
    Verify the first Data-Integrity proof of a credential.

    The expected verificationMethod is derived from the supplied public key;
    a proof naming any other method is rejected before the signature is
    checked.

    Args:
        credential: Signed credential dict.
        public_key_hex: Trusted Ed25519 public key (hex).

    Returns:
        True if the signature is valid, False otherwise.

    Raises:
        InvalidKeyMaterial: If the public key is malformed.
        MalformedInput: If the proof is missing, unsupported, or its
            proofValue cannot be decoded.
    """
    public_hex = normalize_key_hex(public_key_hex, "Public key")
    proof, signature = _checked_proof(credential)

    expected_method = did_key_verification_method(public_hex)
    if proof.get("verificationMethod") != expected_method:
        logger.debug(f"verificationMethod mismatch for credential {credential.get('id')}")
        return False

    if proof.get("proofPurpose") != PROOF_PURPOSE:
        logger.debug(f"Unexpected proofPurpose {proof.get('proofPurpose')!r}")
        return False

    try:
        message = hash_data(credential, proof)
    except MalformedInput as e:
        logger.debug(f"Canonicalization failed during verification: {e}")
        return False

    try:
        load_public_key(public_hex).verify(signature, message)
    except InvalidSignature:
        logger.debug(f"Signature verification failed for credential {credential.get('id')}")
        return False

    return True
