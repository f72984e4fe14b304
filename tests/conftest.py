"""
EduHash - Test Configuration and Fixtures
"""
import pytest
import mongomock
from fastapi.testclient import TestClient

from eduhash.config import Settings
from eduhash.crypto.keys import KeyMaterial
from eduhash.receipts.signer import ReceiptSigner
from eduhash.receipts.verifier import ReceiptVerifier
from eduhash.server import create_app
from eduhash.storage.db import TransactionStore

TEST_SECRET = "test-secret-key-for-testing-only"


class FakeMailer:
    """Records OTP deliveries instead of talking to SMTP"""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def send_otp(self, to: str, otp: str, amount: str) -> bool:
        if self.fail:
            return False
        self.sent.append({"to": to, "otp": otp, "amount": amount})
        return True


@pytest.fixture(scope="session")
def keys() -> KeyMaterial:
    """One throwaway signing identity for the whole run"""
    return KeyMaterial.generate(TEST_SECRET, key_size=2048)


@pytest.fixture
def signer(keys) -> ReceiptSigner:
    return ReceiptSigner(keys)


@pytest.fixture
def verifier(keys) -> ReceiptVerifier:
    return ReceiptVerifier(keys)


@pytest.fixture
def store() -> TransactionStore:
    collection = mongomock.MongoClient()["eduhash_test"]["transactions"]
    return TransactionStore(collection)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(jwt_secret=TEST_SECRET, keys_dir=str(tmp_path / "keys"), otp_ttl_seconds=60)


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def client(settings, keys, store, mailer):
    app = create_app(settings, keys=keys, store=store, mailer=mailer)
    with TestClient(app) as c:
        yield c
