#!/usr/bin/env python3
"""
WeatherCover Management CLI

Commands for operating the engine:
- generate-keypair: Create an Ed25519 caller identity
- sign-request: Produce X-Caller-Key / X-Caller-Signature headers
- quote: Price coverage under ad-hoc profile parameters
- verify-journal: Verify an exported journal's hash chain

Usage:
    python -m tools.manage <command> [options]

Examples:
    python -m tools.manage generate-keypair
    python -m tools.manage sign-request --private-key <b64> --method POST \\
        --path /policies --body '{"profile_id": 1, "coverage_amount": 10000, "duration": 1000}'
    python -m tools.manage quote --base-rate-bps 500 --risk-factor-bps 200 \\
        --min-coverage 1000 --max-coverage 100000 --coverage 10000
    python -m tools.manage verify-journal --input journal.json
"""

import argparse
import json
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


def cmd_generate_keypair(args):
    """Generate a caller keypair. The public key IS the identity."""
    from weathercover.core import Signer

    private_key, public_key = Signer.generate_keypair()

    print("\n[OK] Keypair generated")
    print("\n  Identity / public key:")
    print(f"  {public_key}")
    print("\n  Private key (KEEP SECRET!):")
    print(f"  {private_key}")
    print("\n  To make this identity the admin, set:")
    print(f"  WEATHERCOVER_ADMIN={public_key}")


def cmd_sign_request(args):
    """Sign one HTTP request and print the authentication headers."""
    from weathercover.core import Signer

    if args.body_file:
        body = Path(args.body_file).read_bytes()
    else:
        body = (args.body or "").encode("utf-8")

    try:
        public_key = Signer.public_key_for(args.private_key)
        signature = Signer.sign_request(args.method, args.path, body, args.private_key)
    except (ValueError, TypeError) as e:
        print(f"[FAIL] Could not sign request: {e}")
        return 1

    print(f"X-Caller-Key: {public_key}")
    print(f"X-Caller-Signature: {signature}")
    return 0


def cmd_quote(args):
    """Price coverage with the engine's premium formula."""
    from weathercover.core import InvalidCoverageAmountError, premium_for
    from weathercover.schemas import RiskProfile

    try:
        profile = RiskProfile(
            profile_id=0,
            name="quote",
            base_rate_bps=args.base_rate_bps,
            risk_factor_bps=args.risk_factor_bps,
            coverage_multiplier=1,
            min_coverage=args.min_coverage,
            max_coverage=args.max_coverage,
        )
        premium = premium_for(profile, args.coverage)
    except (InvalidCoverageAmountError, ValueError) as e:
        print(f"[FAIL] {e}")
        return 1

    print(f"Coverage: {args.coverage}")
    print(f"Rate:     {profile.total_rate_bps} bps")
    print(f"Premium:  {premium}")
    return 0


def cmd_verify_journal(args):
    """Verify the hash chain of a JSON journal export."""
    from pydantic import ValidationError

    from weathercover.db import JournalIntegrityError, verify_event_chain
    from weathercover.schemas import JournalEvent

    print(f"Loading journal from {args.input}...")
    with open(args.input) as f:
        data = json.load(f)

    try:
        events = [JournalEvent.model_validate(item) for item in data]
    except ValidationError as e:
        print(f"[FAIL] Malformed journal export: {e}")
        return 1

    print(f"Found {len(events)} events")

    try:
        verify_event_chain(events)
    except JournalIntegrityError as e:
        print(f"[FAIL] Journal integrity verification FAILED: {e}")
        return 1

    print("[OK] Journal integrity verified OK")
    if events:
        print(f"  Chain head: {events[-1].event_hash[:16]}...")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="WeatherCover Management CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # generate-keypair
    subparsers.add_parser(
        "generate-keypair",
        help="Generate an Ed25519 caller identity"
    )

    # sign-request
    p_sign = subparsers.add_parser(
        "sign-request",
        help="Sign an HTTP request"
    )
    p_sign.add_argument("--private-key", required=True, help="Base64 private key")
    p_sign.add_argument("--method", default="POST", help="HTTP method (default: POST)")
    p_sign.add_argument("--path", required=True, help="Request path, e.g. /policies")
    p_sign.add_argument("--body", help="Exact request body")
    p_sign.add_argument("--body-file", help="Read the exact request body from a file")

    # quote
    p_quote = subparsers.add_parser(
        "quote",
        help="Price coverage under profile parameters"
    )
    p_quote.add_argument("--base-rate-bps", type=int, required=True)
    p_quote.add_argument("--risk-factor-bps", type=int, required=True)
    p_quote.add_argument("--min-coverage", type=int, required=True)
    p_quote.add_argument("--max-coverage", type=int, required=True)
    p_quote.add_argument("--coverage", type=int, required=True)

    # verify-journal
    p_verify = subparsers.add_parser(
        "verify-journal",
        help="Verify a JSON journal export"
    )
    p_verify.add_argument("--input", "-i", required=True, help="Journal export file")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "generate-keypair": cmd_generate_keypair,
        "sign-request": cmd_sign_request,
        "quote": cmd_quote,
        "verify-journal": cmd_verify_journal,
    }

    return commands[args.command](args) or 0


if __name__ == "__main__":
    sys.exit(main())
