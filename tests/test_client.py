"""
Tests for the verification client and CLI
"""
import httpx
import pytest

from eduhash import client as client_module
from eduhash.client import RemoteVerifier, guess_content_type, main
from eduhash.common.utils import sha256_hex
from eduhash.errors import VerificationUnavailableError
from eduhash.receipts.tamper import InspectionResult

SCENARIO = "S1|Alice|5000|2024-01-01T00:00:00Z|T100"


class TestRemoteVerifier:
    def test_verifies_against_running_app(self, client, keys):
        """TestClient is an httpx.Client, so it stands in for the server"""
        remote = RemoteVerifier(client=client)
        signature = keys.sign(sha256_hex(SCENARIO))

        result = remote(signature, SCENARIO)

        assert result.valid is True
        assert result.verified_fields.student_name == "Alice"

    def test_fetches_public_key(self, client, keys):
        pub = RemoteVerifier(client=client).fetch_public_key()
        digest = sha256_hex(SCENARIO)
        assert pub.verify(digest, keys.sign(digest))

    def test_unreachable_server(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        http = httpx.Client(transport=httpx.MockTransport(handler), base_url="http://verifier")

        with pytest.raises(VerificationUnavailableError):
            RemoteVerifier(client=http).verify("sig", SCENARIO)

    def test_server_error_status(self):
        http = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(500)),
                            base_url="http://verifier")

        with pytest.raises(VerificationUnavailableError):
            RemoteVerifier(client=http).verify("sig", SCENARIO)

    def test_unexpected_body(self):
        http = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>")),
                            base_url="http://verifier")

        with pytest.raises(VerificationUnavailableError):
            RemoteVerifier(client=http).verify("sig", SCENARIO)


class TestCli:
    def test_content_type_guess(self, tmp_path):
        assert guess_content_type(tmp_path / "r.pdf") == "application/pdf"
        assert guess_content_type(tmp_path / "r.png") == "image/png"

    def test_missing_file(self, tmp_path):
        assert main([str(tmp_path / "missing.pdf"), "--no-verify"]) == 2

    def test_offline_verification_with_public_key(self, tmp_path, keys, monkeypatch, capsys):
        receipt = tmp_path / "receipt.pdf"
        receipt.write_bytes(b"%PDF")
        pem = tmp_path / "public.pem"
        pem.write_text(keys.get_public_key_pem())
        seen = {}

        def fake_inspect(content, content_type, verifier=None):
            seen["valid"] = verifier("bad-signature", SCENARIO).valid
            return InspectionResult(status="invalid_signature", message="Tampered / Invalid Receipt")

        monkeypatch.setattr(client_module, "inspect_receipt", fake_inspect)

        assert main([str(receipt), "--public-key", str(pem)]) == 1
        assert seen["valid"] is False
        assert "INVALID_SIGNATURE" in capsys.readouterr().out
