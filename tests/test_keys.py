"""
Unit tests for Ed25519 key and did:key utilities.
"""

import pytest
import base58

from badgesmith.errors import InvalidKeyMaterial
from badgesmith.keys import (
    derive_public_key,
    did_key_from_public_key,
    did_key_to_public_key_hex,
    ensure_key_pair,
    generate_key_id,
    generate_keypair,
    generate_multikey_document,
    public_key_from_multibase,
    public_key_multibase,
    validate_key_id,
    validate_multibase_public_key,
    verification_method,
)


class TestDerivePublicKey:
    """Tests for derive_public_key()."""

    def test_returns_lowercase_hex(self, private_key_hex):
        """Derived public key is 64 lowercase hex characters."""
        public_hex = derive_public_key(private_key_hex)
        assert len(public_hex) == 64
        assert public_hex == public_hex.lower()
        int(public_hex, 16)

    def test_deterministic(self, private_key_hex):
        """The same private key always yields the same public key."""
        assert derive_public_key(private_key_hex) == derive_public_key(private_key_hex)

    def test_uppercase_input_accepted(self, private_key_hex):
        """Uppercase hex derives the same key."""
        assert derive_public_key(private_key_hex.upper()) == derive_public_key(private_key_hex)

    @pytest.mark.parametrize("bad", ["", "abc", "0" * 63, "0" * 65, "g" * 64, "0x" + "0" * 62])
    def test_rejects_malformed_hex(self, bad):
        """Anything other than 64 hex characters is InvalidKeyMaterial."""
        with pytest.raises(InvalidKeyMaterial, match="64 hex characters"):
            derive_public_key(bad)

    @pytest.mark.parametrize("suffix", ["\n", " ", "\t"])
    def test_rejects_trailing_whitespace(self, private_key_hex, suffix):
        """A 64-character key followed by whitespace is not exactly 64 hex characters."""
        with pytest.raises(InvalidKeyMaterial, match="64 hex characters"):
            derive_public_key(private_key_hex + suffix)

    def test_rejects_non_string(self):
        """Non-string key material is rejected."""
        with pytest.raises(InvalidKeyMaterial):
            derive_public_key(None)

    def test_error_does_not_echo_key(self):
        """The offending key never appears in the error."""
        secret = "ab" * 31 + "zz"
        with pytest.raises(InvalidKeyMaterial) as exc_info:
            derive_public_key(secret)
        assert secret not in str(exc_info.value)
        assert secret not in str(exc_info.value.context)


class TestKeyPairing:
    """Tests for ensure_key_pair() and generate_keypair()."""

    def test_matching_pair(self, private_key_hex, public_key_hex):
        """A correctly paired public key is accepted."""
        assert ensure_key_pair(private_key_hex, public_key_hex) == public_key_hex

    def test_mismatched_pair(self, private_key_hex, other_public_key_hex):
        """A public key from another pair is rejected."""
        with pytest.raises(InvalidKeyMaterial, match="does not match"):
            ensure_key_pair(private_key_hex, other_public_key_hex)

    def test_generate_keypair_is_consistent(self):
        """Generated keypairs carry matching DID and verification method."""
        pair = generate_keypair()
        assert derive_public_key(pair.private_key_hex) == pair.public_key_hex
        assert pair.did == did_key_from_public_key(pair.public_key_hex)
        assert pair.verification_method == verification_method(pair.did, pair.public_key_hex)

    def test_generate_keypair_unique(self):
        """Each call generates a new key."""
        assert generate_keypair().private_key_hex != generate_keypair().private_key_hex


class TestDidKey:
    """Tests for did:key derivation."""

    def test_did_key_format(self, public_key_hex):
        """Ed25519 did:key identifiers start with did:key:z6Mk."""
        did = did_key_from_public_key(public_key_hex)
        assert did.startswith("did:key:z6Mk")

    def test_did_key_encodes_multicodec_prefix(self, public_key_hex):
        """The multibase body is 0xed01 followed by the raw key."""
        did = did_key_from_public_key(public_key_hex)
        decoded = base58.b58decode(did[len("did:key:z"):])
        assert decoded[:2] == bytes([0xED, 0x01])
        assert decoded[2:].hex() == public_key_hex

    def test_verification_method_fragment(self, public_key_hex):
        """verificationMethod is the DID plus # plus the same multibase key."""
        did = did_key_from_public_key(public_key_hex)
        method = verification_method(did, public_key_hex)
        assert method == f"{did}#{did[len('did:key:'):]}"

    def test_did_key_round_trip(self, public_key_hex):
        """A did:key resolves back to its public key, with or without fragment."""
        did = did_key_from_public_key(public_key_hex)
        assert did_key_to_public_key_hex(did) == public_key_hex
        assert did_key_to_public_key_hex(verification_method(did, public_key_hex)) == public_key_hex

    def test_did_key_rejects_other_methods(self):
        """Non did:key identifiers cannot be resolved."""
        with pytest.raises(InvalidKeyMaterial):
            did_key_to_public_key_hex("did:web:example.org")

    def test_did_key_rejects_bad_key(self):
        """did:key derivation validates key length."""
        with pytest.raises(InvalidKeyMaterial):
            did_key_from_public_key("1234")


class TestMultibase:
    """Tests for multibase public key helpers."""

    def test_multibase_round_trip(self, public_key_hex):
        """public_key_from_multibase inverts public_key_multibase."""
        assert public_key_from_multibase(public_key_multibase(public_key_hex)) == public_key_hex

    def test_valid_multibase(self, public_key_hex):
        """A generated multikey validates."""
        assert validate_multibase_public_key(public_key_multibase(public_key_hex)) == (True, None)

    def test_missing_z_prefix(self, public_key_hex):
        """Keys must carry the base58btc sigil."""
        valid, error = validate_multibase_public_key(public_key_multibase(public_key_hex)[1:])
        assert not valid
        assert 'must start with "z"' in error

    def test_invalid_base58(self):
        """0, O, I and l are not Base58 characters."""
        valid, error = validate_multibase_public_key("z0OIl")
        assert not valid
        assert "invalid Base58 characters" in error

    def test_trailing_newline_rejected(self, public_key_hex):
        """A newline after the Base58 body is not a Base58 character."""
        valid, error = validate_multibase_public_key(public_key_multibase(public_key_hex) + "\n")
        assert not valid
        assert "invalid Base58 characters" in error

    def test_wrong_length(self):
        """Decoded keys must be 34 bytes."""
        short = "z" + base58.b58encode(bytes([0xED, 0x01]) + b"\x01" * 10).decode()
        valid, error = validate_multibase_public_key(short)
        assert not valid
        assert "Expected 34 bytes" in error

    def test_wrong_multicodec(self):
        """Keys must use the Ed25519 multicodec prefix."""
        other = "z" + base58.b58encode(bytes([0xE7, 0x01]) + b"\x01" * 32).decode()
        valid, error = validate_multibase_public_key(other)
        assert not valid
        assert "multicodec prefix" in error


class TestKeyIds:
    """Tests for key ids and Multikey documents."""

    def test_generate_key_id(self, public_key_hex):
        """Key ids use the first 8 hex characters."""
        assert generate_key_id(public_key_hex) == f"key-{public_key_hex[:8]}"

    def test_validate_key_id(self, public_key_hex):
        """Short and full-length key ids both validate."""
        assert validate_key_id(generate_key_id(public_key_hex), public_key_hex) == (True, None)
        assert validate_key_id(f"key-{public_key_hex}", public_key_hex)[0]

    def test_key_id_prefix_required(self, public_key_hex):
        """Key ids must start with key-."""
        valid, error = validate_key_id(f"invalid-{public_key_hex[:8]}", public_key_hex)
        assert not valid
        assert 'must start with "key-"' in error

    def test_key_id_must_match_key(self, public_key_hex, other_public_key_hex):
        """Key ids from another key are rejected."""
        valid, error = validate_key_id(generate_key_id(other_public_key_hex), public_key_hex)
        assert not valid
        assert "does not match public key prefix" in error

    def test_multikey_document(self, public_key_hex):
        """Multikey documents carry contexts, id, controller and key."""
        key_id = generate_key_id(public_key_hex)
        doc = generate_multikey_document(public_key_hex, key_id, "https://badges.example.org")
        assert doc["@context"] == [
            "https://www.w3.org/ns/credentials/v2",
            "https://w3id.org/security/multikey/v1",
        ]
        assert doc["type"] == "Multikey"
        assert doc["controller"] == "https://badges.example.org"
        assert doc["id"] == f"https://badges.example.org/api/badge/keys/{key_id}"
        assert doc["publicKeyMultibase"] == public_key_multibase(public_key_hex)

    def test_multikey_document_deterministic(self, public_key_hex):
        """Same inputs give equal documents."""
        key_id = generate_key_id(public_key_hex)
        a = generate_multikey_document(public_key_hex, key_id, "https://a.example.org")
        b = generate_multikey_document(public_key_hex, key_id, "https://a.example.org")
        assert a == b

    def test_multikey_document_rejects_bad_input(self, public_key_hex):
        """Bad key, key id or URL raise ValueError."""
        key_id = generate_key_id(public_key_hex)
        with pytest.raises(InvalidKeyMaterial):
            generate_multikey_document("invalid", key_id, "https://a.example.org")
        with pytest.raises(ValueError, match="key-"):
            generate_multikey_document(public_key_hex, "invalid", "https://a.example.org")
        with pytest.raises(ValueError, match="valid URL"):
            generate_multikey_document(public_key_hex, key_id, "not-a-url")
