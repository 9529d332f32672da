"""
Tests for the command line interface.
"""

import json

import pytest

from badgesmith.cli import main
from badgesmith.config import PRIVATE_KEY_ENV, PUBLIC_KEY_ENV
from badgesmith.keys import did_key_from_public_key


@pytest.fixture
def config_file(tmp_path, credential_dict_config):
    path = tmp_path / "credential.json"
    path.write_text(json.dumps(credential_dict_config), encoding="utf-8")
    return path


@pytest.fixture
def signed_file(tmp_path, config_file, private_key_hex, created):
    path = tmp_path / "signed.json"
    assert main(["issue", str(config_file), "--created", created, "--key", private_key_hex, "-o", str(path)]) == 0
    return path


class TestKeyCommands:
    """Tests for keygen and did."""

    def test_keygen_env(self, capsys):
        """keygen --env prints shell exports."""
        assert main(["keygen", "--env"]) == 0
        out = capsys.readouterr().out
        assert f"export {PRIVATE_KEY_ENV}=" in out
        assert f"export {PUBLIC_KEY_ENV}=" in out

    def test_did(self, capsys, public_key_hex):
        """did prints the did:key and verification method."""
        assert main(["did", public_key_hex]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == did_key_from_public_key(public_key_hex)
        assert lines[1].startswith(lines[0] + "#")

    def test_did_bad_key(self, capsys):
        """Malformed keys exit non-zero."""
        assert main(["did", "1234"]) == 1
        assert "Error" in capsys.readouterr().err


class TestIssueAndVerify:
    """Tests for issue and verify."""

    def test_issue_writes_signed_credential(self, signed_file):
        """issue writes a credential with one proof."""
        signed = json.loads(signed_file.read_text(encoding="utf-8"))
        assert len(signed["proof"]) == 1

    def test_verify_valid(self, capsys, signed_file, public_key_hex):
        """verify exits zero for a valid badge."""
        assert main(["verify", str(signed_file), "--key", public_key_hex]) == 0
        assert capsys.readouterr().out.startswith("VALID")

    def test_verify_json(self, capsys, signed_file, public_key_hex):
        """verify --json prints the report."""
        assert main(["verify", str(signed_file), "--key", public_key_hex, "--json"]) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["valid"] is True

    def test_verify_wrong_key(self, capsys, signed_file, other_public_key_hex):
        """verify exits non-zero when the signature does not match."""
        assert main(["verify", str(signed_file), "--key", other_public_key_hex]) == 1
        assert capsys.readouterr().out.startswith("INVALID")

    def test_issue_jwt(self, capsys, tmp_path, config_file, private_key_hex, public_key_hex, created):
        """issue --format jwt writes a compact token that verifies."""
        token_file = tmp_path / "badge.jwt"
        args = ["issue", str(config_file), "--created", created, "--format", "jwt", "--key", private_key_hex]
        assert main(args + ["-o", str(token_file)]) == 0
        assert token_file.read_text(encoding="utf-8").count(".") == 2
        assert main(["verify", str(token_file), "--key", public_key_hex]) == 0

    def test_issue_missing_key(self, capsys, monkeypatch, config_file, created):
        """issue needs a private key."""
        monkeypatch.delenv(PRIVATE_KEY_ENV, raising=False)
        assert main(["issue", str(config_file), "--created", created]) == 1
        assert PRIVATE_KEY_ENV in capsys.readouterr().err

    def test_issue_key_from_environment(self, monkeypatch, tmp_path, config_file, private_key_hex, created):
        """issue falls back to the private key environment variable."""
        monkeypatch.setenv(PRIVATE_KEY_ENV, private_key_hex)
        out = tmp_path / "env-signed.json"
        assert main(["issue", str(config_file), "--created", created, "-o", str(out)]) == 0
        assert out.exists()

    def test_issue_invalid_config(self, capsys, tmp_path, private_key_hex, created):
        """Invalid configurations exit non-zero with the reason."""
        path = tmp_path / "bad.json"
        path.write_text("{}", encoding="utf-8")
        assert main(["issue", str(path), "--created", created, "--key", private_key_hex]) == 1
        assert "Credential ID is required" in capsys.readouterr().err

    def test_verify_missing_file(self, capsys, tmp_path):
        """Unreadable badge files exit non-zero."""
        assert main(["verify", str(tmp_path / "missing.json")]) == 1
        assert "Error reading badge" in capsys.readouterr().err


class TestBakeAndExtract:
    """Tests for bake and extract."""

    def test_bake_extract_verify(self, capsys, tmp_path, base_svg, signed_file, public_key_hex):
        """A baked SVG extracts and verifies."""
        svg_path = tmp_path / "badge.svg"
        svg_path.write_text(base_svg, encoding="utf-8")
        baked_path = tmp_path / "baked.svg"

        assert main(["bake", str(svg_path), str(signed_file), "-o", str(baked_path)]) == 0
        assert main(["extract", str(baked_path)]) == 0
        extracted = json.loads(capsys.readouterr().out)
        assert extracted["assertion"]["id"] == "https://badges.example.org/api/badge/abc123"
        assert main(["verify", str(baked_path), "--key", public_key_hex]) == 0

    def test_bake_legacy_requires_url(self, capsys, tmp_path, base_svg, signed_file):
        """Legacy baking without --verify-url fails."""
        svg_path = tmp_path / "badge.svg"
        svg_path.write_text(base_svg, encoding="utf-8")
        assert main(["bake", str(svg_path), str(signed_file), "--legacy"]) == 1
        assert "verification URL" in capsys.readouterr().err

    def test_extract_plain_svg(self, capsys, tmp_path, base_svg):
        """extract exits non-zero when no badge is present."""
        svg_path = tmp_path / "plain.svg"
        svg_path.write_text(base_svg, encoding="utf-8")
        assert main(["extract", str(svg_path)]) == 1
        assert "No badge credential found" in capsys.readouterr().err


class TestMisc:
    """Tests for config and help."""

    def test_config(self, capsys):
        """config prints the configuration summary."""
        assert main(["config"]) == 0
        assert "Badge Configuration" in capsys.readouterr().out

    def test_no_command(self, capsys):
        """No command prints help."""
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out.lower()
