#!/usr/bin/env python3
"""
Device Auth Token Generator

Creates device keypairs and signs requests by hand, for provisioning
feeders and calling the API with cURL.

Usage:
    python3 scripts/generate_auth_token.py keygen --device pi-user --out ./keys
    python3 scripts/generate_auth_token.py sign POST /urls/feed '{"fileName":"test","format":"jpg","source":"motion"}'
    python3 scripts/generate_auth_token.py sign GET /health --device pi-motion

The sign command reads the PEM private key from <DEVICE>_PRIVATE_KEY_PATH,
e.g. PI_USER_PRIVATE_KEY_PATH for pi-user.
"""
import sys
import os
import argparse
import json
import logging
import time
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.core.signing import (  # noqa: E402
    RequestSigner,
    SigningError,
    build_canonical_message,
    encode_key,
    generate_keypair,
    serialize_body,
)

logger = logging.getLogger("generate_auth_token")

DEFAULT_API_URL = "https://api-dev.crittercanteen.com"


def env_prefix(device_id: str) -> str:
    """pi-user -> PI_USER"""
    return device_id.upper().replace("-", "_")


def cmd_keygen(args) -> int:
    private_pem, public_pem = generate_keypair()

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    private_path = out_dir / f"{args.device}.key"
    public_path = out_dir / f"{args.device}.pub"

    private_path.write_text(private_pem)
    os.chmod(private_path, 0o600)  # Owner read/write only
    public_path.write_text(public_pem)

    prefix = env_prefix(args.device)
    print(f"Private key: {private_path}")
    print(f"Public key:  {public_path}")
    print()
    print("Server environment / device-keys secret entry:")
    print(f"  {prefix}_PUBLIC_KEY={encode_key(public_pem)}")
    print()
    print("Device environment:")
    print(f"  {prefix}_PRIVATE_KEY_PATH={private_path.resolve()}")
    return 0


def cmd_sign(args) -> int:
    try:
        body = json.loads(args.body) if args.body else {}
    except json.JSONDecodeError as e:
        logger.error(f"Body is not valid JSON: {e}")
        return 1

    env_key = f"{env_prefix(args.device)}_PRIVATE_KEY_PATH"
    key_path = os.getenv(env_key)
    if not key_path:
        logger.error(f"Environment variable {env_key} not set. Set it to the path of your private key file.")
        return 1

    path = Path(key_path).expanduser()
    if not path.exists():
        logger.error(f"Private key file not found at: {path}")
        return 1

    timestamp_ms = int(time.time() * 1000)
    try:
        signer = RequestSigner(args.device, path.read_text())
        headers = signer.generate_auth_headers(args.method, args.path, body, timestamp_ms=timestamp_ms)
    except SigningError as e:
        logger.error(f"Error generating auth token: {e}")
        return 1

    print("=== Authentication Token Generated ===")
    print(f"Device ID:    {args.device}")
    print(f"Timestamp:    {timestamp_ms}")
    print(f"Data to sign: {build_canonical_message(args.method, args.path, body, str(timestamp_ms))}")
    print(f"Signature:    {headers['x-signature']}")
    print()
    print("=== cURL ===")
    body_arg = f" -d '{serialize_body(body)}'" if body else ""
    print(f"curl -X {args.method} {args.url.rstrip('/')}{args.path}{body_arg} \\")
    print('  -H "Content-Type: application/json" \\')
    for i, (name, value) in enumerate(headers.items()):
        suffix = " \\" if i < len(headers) - 1 else ""
        print(f'  -H "{name}: {value}"{suffix}')
    print()
    print("Headers are valid for 5 minutes.")
    return 0


def main():
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    parser = argparse.ArgumentParser(
        description="Generate device keys and signed request headers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # New keypair for a feeder
    python3 scripts/generate_auth_token.py keygen --device pi-feeder --out ./keys

    # Signed headers for an upload URL request
    python3 scripts/generate_auth_token.py sign POST /urls/detection '{"fileName":"d","format":"jpg","feedEventId":"123"}' --device pi-motion

Available device IDs: pi-user, pi-motion, pi-feeder
        """
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    keygen = subparsers.add_parser("keygen", help="Generate a P-256 keypair")
    keygen.add_argument("--device", default="pi-user", help="Device ID (default: pi-user)")
    keygen.add_argument("--out", default="./keys", help="Output directory (default: ./keys)")
    keygen.set_defaults(func=cmd_keygen)

    sign = subparsers.add_parser("sign", help="Sign a request and print headers")
    sign.add_argument("method", type=str.upper, help="HTTP method, e.g. POST")
    sign.add_argument("path", help="Request path, e.g. /urls/feed")
    sign.add_argument("body", nargs="?", help="JSON body (default: {})")
    sign.add_argument("--device", default="pi-user", help="Device ID (default: pi-user)")
    sign.add_argument("--url", default=os.getenv("API_BASE_URL", DEFAULT_API_URL), help="API base URL for the cURL example")
    sign.set_defaults(func=cmd_sign)

    args = parser.parse_args()
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
