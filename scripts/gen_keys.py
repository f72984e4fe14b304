# scripts/gen_keys.py
import argparse
import os

from dotenv import load_dotenv

from eduhash.crypto.keys import KeyMaterial
from eduhash.errors import EduHashError


def main():
    load_dotenv()
    parser = argparse.ArgumentParser(description="Provision (or load) the receipt signing keypair.")
    parser.add_argument("--keys-dir", default=os.getenv("KEYS_DIR", "keys"))
    parser.add_argument("--key-size", type=int, default=int(os.getenv("RSA_KEY_SIZE", "2048")))
    args = parser.parse_args()

    print(f"[*] Preparing RSA signing keys in {args.keys_dir} ...")
    try:
        keys = KeyMaterial.load_or_create(os.getenv("JWT_SECRET", ""), args.keys_dir, args.key_size)
    except EduHashError as e:
        print(f"[!] {e.message}")
        raise SystemExit(1)

    print(f"[+] Signing key ready.\n  fingerprint: {keys.public_key_fingerprint()}")
    print(keys.get_public_key_pem())


if __name__ == "__main__":
    main()
