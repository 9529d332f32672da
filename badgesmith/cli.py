"""
badgesmith Command Line Interface.

Provides commands for generating issuer keys, issuing and signing
credentials, baking them into SVG badges, and verifying badges.
"""

import argparse
import sys
import json
import os
import logging
from pathlib import Path
from typing import List, Optional

from badgesmith.baking import BakeFormat, bake_svg, extract_from_svg
from badgesmith.config import PRIVATE_KEY_ENV, PUBLIC_KEY_ENV, print_config
from badgesmith.credential import CredentialConfig, create_credential
from badgesmith.data_integrity import sign_credential
from badgesmith.errors import BadgeError
from badgesmith.jwt_proof import sign_credential_jwt
from badgesmith.keys import did_key_from_public_key, generate_keypair, verification_method
from badgesmith.verification import verify_badge


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )


def _write_output(text: str, output: Optional[str]) -> None:
    if output:
        Path(output).write_text(text, encoding='utf-8')
    else:
        print(text)


def cmd_keygen(args: argparse.Namespace) -> int:
    """Generate a new Ed25519 issuer keypair."""
    pair = generate_keypair()

    if args.env:
        print(f"export {PRIVATE_KEY_ENV}='{pair.private_key_hex}'")
        print(f"export {PUBLIC_KEY_ENV}='{pair.public_key_hex}'")
        print(f"# DID: {pair.did}", file=sys.stderr)
    else:
        print("NEW ISSUER KEYPAIR GENERATED\n")
        print(f"DID: {pair.did}")
        print(f"Verification method: {pair.verification_method}")
        print("\n--- PRIVATE KEY (Keep Secret / Set as Env Var) ---")
        print(pair.private_key_hex)
        print("\n--- PUBLIC KEY ---")
        print(pair.public_key_hex)
    return 0


def cmd_did(args: argparse.Namespace) -> int:
    """Print the did:key and verification method for a public key."""
    try:
        did = did_key_from_public_key(args.public_key)
        print(did)
        print(verification_method(did, args.public_key))
        return 0
    except BadgeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_issue(args: argparse.Namespace) -> int:
    """Build a credential from a JSON config and sign it."""
    private_key = args.key or os.environ.get(PRIVATE_KEY_ENV)
    if not private_key:
        print(f"Error: Missing private key. Set {PRIVATE_KEY_ENV} or use --key", file=sys.stderr)
        return 1

    try:
        data = json.loads(Path(args.config).read_text(encoding='utf-8'))
        credential = create_credential(CredentialConfig.from_dict(data))

        if args.format == 'jwt':
            output = sign_credential_jwt(credential, private_key)
        else:
            signed = sign_credential(credential, private_key, args.created)
            output = json.dumps(signed, indent=2, ensure_ascii=False)

        _write_output(output, args.output)
        return 0

    except (OSError, json.JSONDecodeError) as e:
        print(f"Error reading config: {e}", file=sys.stderr)
        return 1
    except BadgeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_verify(args: argparse.Namespace) -> int:
    """Verify a badge file (JSON, JWT or baked SVG)."""
    public_key = args.key or os.environ.get(PUBLIC_KEY_ENV)

    try:
        content = Path(args.file).read_bytes()
    except OSError as e:
        print(f"Error reading badge: {e}", file=sys.stderr)
        return 1

    report = verify_badge(content, public_key_hex=public_key)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print("VALID" if report.valid else "INVALID")
        for check in report.checks:
            print(f"   {check.name:<9} {check.status.value}")
        for reason in report.errors:
            print(f"   - {reason}")

    return 0 if report.valid else 1


def cmd_bake(args: argparse.Namespace) -> int:
    """Bake a signed credential into an SVG."""
    try:
        svg = Path(args.svg).read_text(encoding='utf-8')
        raw = Path(args.credential).read_text(encoding='utf-8').strip()
        credential = raw if not raw.startswith('{') else json.loads(raw)

        fmt = BakeFormat.LEGACY if args.legacy else BakeFormat.MODERN
        baked = bake_svg(svg, credential, format=fmt, verification_url=args.verify_url)
        _write_output(baked, args.output)
        return 0

    except (OSError, json.JSONDecodeError) as e:
        print(f"Error reading input: {e}", file=sys.stderr)
        return 1
    except BadgeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_extract(args: argparse.Namespace) -> int:
    """Extract the credential baked into an SVG."""
    try:
        svg = Path(args.svg).read_bytes()
    except OSError as e:
        print(f"Error reading SVG: {e}", file=sys.stderr)
        return 1

    extracted = extract_from_svg(svg)
    if not extracted.found:
        print("No badge credential found", file=sys.stderr)
        return 1

    print(json.dumps(extracted.to_dict(), indent=2, ensure_ascii=False))
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Show the current configuration."""
    print_config()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog='badgesmith',
        description='badgesmith CLI - OpenBadges 3.0 credentials'
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose output')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # keygen command
    p_keygen = subparsers.add_parser('keygen', help='Generate an issuer keypair')
    p_keygen.add_argument('--env', action='store_true', help='Output as environment variables')

    # did command
    p_did = subparsers.add_parser('did', help='Show the did:key for a public key')
    p_did.add_argument('public_key', help='Ed25519 public key (hex)')

    # issue command
    p_issue = subparsers.add_parser('issue', help='Build and sign a credential')
    p_issue.add_argument('config', help='Credential config JSON file')
    p_issue.add_argument('--created', required=True, help='Proof timestamp (ISO-8601)')
    p_issue.add_argument('--format', choices=['data-integrity', 'jwt'], default='data-integrity')
    p_issue.add_argument('--key', help='Private key (hex)')
    p_issue.add_argument('-o', '--output', help='Write to file instead of stdout')

    # verify command
    p_verify = subparsers.add_parser('verify', help='Verify a badge')
    p_verify.add_argument('file', help='Credential JSON, JWT or baked SVG file')
    p_verify.add_argument('--key', help='Issuer public key (hex)')
    p_verify.add_argument('--json', action='store_true', help='Output as JSON')

    # bake command
    p_bake = subparsers.add_parser('bake', help='Bake a credential into an SVG')
    p_bake.add_argument('svg', help='Base SVG file')
    p_bake.add_argument('credential', help='Signed credential JSON or JWT file')
    p_bake.add_argument('--legacy', action='store_true', help='Use the legacy assertion element')
    p_bake.add_argument('--verify-url', help='Verification URL (required with --legacy)')
    p_bake.add_argument('-o', '--output', help='Write to file instead of stdout')

    # extract command
    p_extract = subparsers.add_parser('extract', help='Extract a credential from an SVG')
    p_extract.add_argument('svg', help='Baked SVG file')

    subparsers.add_parser('config', help='Show configuration')

    args = parser.parse_args(argv)

    setup_logging(args.verbose if hasattr(args, 'verbose') else False)

    commands = {
        'keygen': cmd_keygen,
        'did': cmd_did,
        'issue': cmd_issue,
        'verify': cmd_verify,
        'bake': cmd_bake,
        'extract': cmd_extract,
        'config': cmd_config,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 0
    return handler(args)


if __name__ == '__main__':
    sys.exit(main())
