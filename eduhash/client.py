# eduhash/client.py
import argparse
import mimetypes
import os
import sys
from pathlib import Path
from typing import Optional

import httpx
from dotenv import load_dotenv

from eduhash.common.protocol import VerificationResult
from eduhash.config import configure_logging
from eduhash.crypto.keys import PublicKey
from eduhash.errors import VerificationUnavailableError
from eduhash.receipts.tamper import InspectionResult, inspect_receipt
from eduhash.receipts.verifier import ReceiptVerifier

load_dotenv()

DEFAULT_SERVER = os.getenv("EDUHASH_SERVER", "http://127.0.0.1:5000")


class RemoteVerifier:
    """Forwards (signature, data) to a running server's /verify-receipt endpoint."""

    def __init__(self, base_url: str = DEFAULT_SERVER, timeout: float = 10.0,
                 client: Optional[httpx.Client] = None):
        self.client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def verify(self, signature: str, data: str) -> VerificationResult:
        try:
            resp = self.client.post("/verify-receipt", json={"signature": signature, "originalData": data})
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise VerificationUnavailableError() from e
        try:
            return VerificationResult.model_validate(resp.json())
        except ValueError as e:
            raise VerificationUnavailableError("Unexpected response from verification server.") from e

    __call__ = verify

    def fetch_public_key(self) -> PublicKey:
        try:
            resp = self.client.get("/public-key")
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise VerificationUnavailableError() from e
        return PublicKey.from_pem(resp.json()["publicKey"])


def guess_content_type(path: Path) -> str:
    mime, _ = mimetypes.guess_type(str(path))
    return mime or "application/octet-stream"


def inspect_file(path: Path, verifier=None) -> InspectionResult:
    return inspect_receipt(path.read_bytes(), guess_content_type(path), verifier)


def print_result(result: InspectionResult) -> None:
    mark = "[+]" if result.authentic else "[X]"
    print(f"\n{mark} {result.status.upper()}: {result.message}")

    if result.tamper and result.tamper.tampered:
        print(f"    field:    {result.tamper.field}")
        print(f"    expected: {result.tamper.expected}")

    verification = result.verification
    if verification and verification.valid and verification.verified_fields:
        f = verification.verified_fields
        print(f"    name:        {f.student_name}")
        print(f"    amount:      Rs. {f.amount}")
        print(f"    date:        {f.date}")
        print(f"    transaction: {f.transaction_id}")
        if verification.note:
            print(f"    note:        {verification.note}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Check a fee receipt (PDF or image) for tampering and verify its signature.")
    parser.add_argument("file", type=Path, help="Receipt PDF or image")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--server", default=DEFAULT_SERVER, help="Verification server base URL")
    group.add_argument("--public-key", type=Path, help="Verify offline against this PEM public key")
    group.add_argument("--no-verify", action="store_true", help="Only run the tamper check")
    args = parser.parse_args(argv)

    configure_logging(os.getenv("LOG_LEVEL", "WARNING"))

    if not args.file.exists():
        print(f"[!] File not found: {args.file}")
        return 2

    if args.no_verify:
        verifier = None
    elif args.public_key:
        verifier = ReceiptVerifier(PublicKey.from_pem(args.public_key.read_bytes()))
    else:
        verifier = RemoteVerifier(args.server)

    result = inspect_file(args.file, verifier)
    print_result(result)
    return 0 if result.authentic else 1


if __name__ == "__main__":
    sys.exit(main())
