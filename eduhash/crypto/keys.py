# eduhash/crypto/keys.py
import os
import errno
import logging
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from eduhash.common.utils import b64encode, try_b64decode, fingerprint_sha256
from eduhash.crypto import sign
from eduhash.errors import ConfigurationError, KeyMaterialError

logger = logging.getLogger(__name__)

PRIVATE_KEY_FILE = "private.pem"
PUBLIC_KEY_FILE = "public.pem"
STAGING_PREFIX = ".keys-"
# How long a starting process waits for a concurrent install to finish
INSTALL_WAIT_SECONDS = 5.0

# Fixed salt: the AES key must be reproducible from the secret alone
SYMMETRIC_KEY_SALT = b"salt"


def derive_symmetric_key(secret: str) -> bytes:
    if not secret:
        raise ConfigurationError("JWT_SECRET is missing. Cannot derive encryption key.")
    kdf = Scrypt(salt=SYMMETRIC_KEY_SALT, length=32, n=2 ** 14, r=8, p=1)
    return kdf.derive(secret.encode("utf-8"))


def verify_hash_signature(public_key: rsa.RSAPublicKey, hash_hex: str, signature_b64: str) -> bool:
    sig = try_b64decode(signature_b64)
    if not sig:
        return False
    return sign.rsa_verify(public_key, hash_hex.encode("utf-8"), sig)


@dataclass(frozen=True)
class PublicKey:
    """Verification-only half of the signing identity, e.g. fetched from /public-key."""
    public_key: rsa.RSAPublicKey

    @classmethod
    def from_pem(cls, pem: Union[str, bytes]) -> "PublicKey":
        if isinstance(pem, str):
            pem = pem.encode("ascii")
        try:
            return cls(sign.load_public_key(pem))
        except (ValueError, UnsupportedAlgorithm) as e:
            raise KeyMaterialError(f"Invalid public key: {e}") from e

    def verify(self, hash_hex: str, signature_b64: str) -> bool:
        return verify_hash_signature(self.public_key, hash_hex, signature_b64)


@dataclass(frozen=True)
class KeyMaterial:
    """
    Process-wide key material, built once at startup and read-only afterwards.

    - symmetric_key: 32-byte AES key derived from the server secret, memory only
    - private_key / public_key: RSA signing identity, persisted as two PEM files

    Signatures are RSASSA-PKCS1-v1_5/SHA-256 over the UTF-8 bytes of a hex
    digest, and travel as base64.
    """
    symmetric_key: bytes
    private_key: rsa.RSAPrivateKey
    public_key: rsa.RSAPublicKey

    @classmethod
    def generate(cls, secret: str, key_size: int = 2048) -> "KeyMaterial":
        priv = sign.generate_private_key(key_size)
        return cls(derive_symmetric_key(secret), priv, priv.public_key())

    @classmethod
    def load_or_create(cls, secret: str, keys_dir: Union[str, Path], key_size: int = 2048) -> "KeyMaterial":
        symmetric_key = derive_symmetric_key(secret)
        keys_dir = Path(keys_dir)
        priv, pub = _load_or_create_keypair(keys_dir, key_size)
        return cls(symmetric_key, priv, pub)

    def get_symmetric_key(self) -> bytes:
        return self.symmetric_key

    def sign(self, hash_hex: str) -> str:
        return b64encode(sign.rsa_sign(self.private_key, hash_hex.encode("utf-8")))

    def verify(self, hash_hex: str, signature_b64: str) -> bool:
        return verify_hash_signature(self.public_key, hash_hex, signature_b64)

    def get_public_key_pem(self) -> str:
        return sign.public_key_pem(self.public_key).decode("ascii")

    def public_key_fingerprint(self) -> str:
        der = self.public_key.public_bytes(
            serialization.Encoding.DER,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        return fingerprint_sha256(der)


def _read_keypair(keys_dir: Path):
    try:
        priv = sign.load_private_key((keys_dir / PRIVATE_KEY_FILE).read_bytes())
        pub = sign.load_public_key((keys_dir / PUBLIC_KEY_FILE).read_bytes())
    except (OSError, ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyMaterialError(f"Cannot load RSA keys from {keys_dir}: {e}") from e

    if priv.public_key().public_numbers() != pub.public_numbers():
        raise KeyMaterialError(f"RSA key files in {keys_dir} do not belong together")
    return priv, pub


def _write_staged_keypair(staging: Path, priv: rsa.RSAPrivateKey) -> None:
    fd = os.open(staging / PRIVATE_KEY_FILE, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(sign.private_key_pem(priv))
    with open(staging / PUBLIC_KEY_FILE, "wb") as f:
        f.write(sign.public_key_pem(priv.public_key()))


def _staged_dirs(keys_dir: Path):
    return [p for p in keys_dir.iterdir() if p.name.startswith(STAGING_PREFIX)]


def _wait_for_keypair(keys_dir: Path) -> bool:
    deadline = time.monotonic() + INSTALL_WAIT_SECONDS
    while True:
        if (keys_dir / PRIVATE_KEY_FILE).exists() and (keys_dir / PUBLIC_KEY_FILE).exists():
            return True
        if time.monotonic() >= deadline:
            return False
        time.sleep(0.05)


def _install_into_directory(keys_dir: Path, priv: rsa.RSAPrivateKey):
    """
    Install a fresh pair next to whatever else keys_dir holds. link() never
    replaces an existing name, so only one process can claim private.pem;
    the public half follows right after it.
    """
    try:
        staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=keys_dir))
    except OSError as e:
        raise KeyMaterialError(f"Cannot write RSA keys into {keys_dir}: {e}") from e

    try:
        _write_staged_keypair(staging, priv)
        try:
            os.link(staging / PRIVATE_KEY_FILE, keys_dir / PRIVATE_KEY_FILE)
        except FileExistsError:
            won = False
        else:
            won = True
            os.link(staging / PUBLIC_KEY_FILE, keys_dir / PUBLIC_KEY_FILE)
    except OSError as e:
        raise KeyMaterialError(f"Cannot install RSA keys into {keys_dir}: {e}") from e
    finally:
        shutil.rmtree(staging, ignore_errors=True)

    if won:
        logger.info("RSA keys generated and saved to %s", keys_dir)
        return priv, priv.public_key()

    if not _wait_for_keypair(keys_dir):
        raise KeyMaterialError(f"Only one half of the RSA keypair exists in {keys_dir}")
    logger.info("RSA keys were installed concurrently, loading from %s", keys_dir)
    return _read_keypair(keys_dir)


def _load_or_create_keypair(keys_dir: Path, key_size: int):
    has_priv = (keys_dir / PRIVATE_KEY_FILE).exists()
    has_pub = (keys_dir / PUBLIC_KEY_FILE).exists()

    if has_priv and has_pub:
        priv, pub = _read_keypair(keys_dir)
        logger.info("RSA keys loaded from %s", keys_dir)
        return priv, pub

    if has_priv or has_pub:
        # Never regenerate over a partial pair; a staging directory means
        # another process is halfway through installing one
        if not (has_priv and _staged_dirs(keys_dir) and _wait_for_keypair(keys_dir)):
            raise KeyMaterialError(f"Only one half of the RSA keypair exists in {keys_dir}")
        logger.info("RSA keys were installed concurrently, loading from %s", keys_dir)
        return _read_keypair(keys_dir)

    priv = sign.generate_private_key(key_size)
    if keys_dir.is_dir():
        return _install_into_directory(keys_dir, priv)

    keys_dir.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=keys_dir.parent))
    _write_staged_keypair(staging, priv)

    # rename() onto a missing directory is atomic; if the target appeared in
    # the meantime, either another process installed its pair there (that
    # one wins) or the directory was created empty-handed
    try:
        os.rename(staging, keys_dir)
    except OSError as e:
        shutil.rmtree(staging, ignore_errors=True)
        if e.errno not in (errno.EEXIST, errno.ENOTEMPTY) and not isinstance(e, (FileExistsError, PermissionError)):
            raise KeyMaterialError(f"Cannot install RSA keys into {keys_dir}: {e}") from e
        if not keys_dir.is_dir():
            raise KeyMaterialError(f"{keys_dir} exists and is not a directory") from e
        if (keys_dir / PRIVATE_KEY_FILE).exists() and (keys_dir / PUBLIC_KEY_FILE).exists():
            logger.info("RSA keys were installed concurrently, loading from %s", keys_dir)
            return _read_keypair(keys_dir)
        return _install_into_directory(keys_dir, priv)

    logger.info("RSA keys generated and saved to %s", keys_dir)
    return priv, priv.public_key()
