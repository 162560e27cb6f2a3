"""
Tests for caller identity signatures and the management CLI.
"""

import json

import pytest

from weathercover.core import Signer
from tools import manage


class TestSigner:
    """Ed25519 caller identity."""

    @pytest.fixture
    def keypair(self):
        return Signer.generate_keypair()

    def test_sign_and_verify(self, keypair):
        private_key, public_key = keypair
        signature = Signer.sign("hello", private_key)

        assert Signer.verify("hello", signature, public_key)
        assert not Signer.verify("hello!", signature, public_key)

    def test_public_key_derivation(self, keypair):
        private_key, public_key = keypair
        assert Signer.public_key_for(private_key) == public_key

    def test_wrong_key_fails(self, keypair):
        private_key, _ = keypair
        _, other_public = Signer.generate_keypair()

        assert not Signer.verify("hello", Signer.sign("hello", private_key), other_public)

    def test_malformed_inputs_fail_closed(self, keypair):
        _, public_key = keypair

        assert not Signer.verify("hello", "not base64!!", public_key)
        assert not Signer.verify("hello", "AAAA", "also not a key")

    def test_request_signature_covers_method_path_and_body(self, keypair):
        private_key, public_key = keypair
        body = b'{"duration": 1000}'
        signature = Signer.sign_request("post", "/policies/1/renew", body, private_key)

        assert Signer.verify_request("POST", "/policies/1/renew", body, signature, public_key)
        assert not Signer.verify_request("PUT", "/policies/1/renew", body, signature, public_key)
        assert not Signer.verify_request("POST", "/policies/2/renew", body, signature, public_key)
        assert not Signer.verify_request(
            "POST", "/policies/1/renew", b'{"duration": 9999}', signature, public_key
        )


class TestManageCLI:
    """Management commands."""

    def test_quote(self, capsys):
        code = manage.main([
            "quote",
            "--base-rate-bps", "500",
            "--risk-factor-bps", "200",
            "--min-coverage", "1000",
            "--max-coverage", "100000",
            "--coverage", "10000",
        ])

        assert code == 0
        assert "Premium:  700" in capsys.readouterr().out

    def test_quote_out_of_bounds(self, capsys):
        code = manage.main([
            "quote",
            "--base-rate-bps", "500",
            "--risk-factor-bps", "200",
            "--min-coverage", "1000",
            "--max-coverage", "100000",
            "--coverage", "10",
        ])

        assert code == 1
        assert "[FAIL]" in capsys.readouterr().out

    def test_sign_request_output_verifies(self, capsys):
        private_key, public_key = Signer.generate_keypair()

        code = manage.main([
            "sign-request",
            "--private-key", private_key,
            "--path", "/treasury/fund",
            "--body", '{"amount": 5}',
        ])

        assert code == 0
        lines = dict(
            line.split(": ", 1) for line in capsys.readouterr().out.strip().splitlines()
        )
        assert lines["X-Caller-Key"] == public_key
        assert Signer.verify_request(
            "POST", "/treasury/fund", b'{"amount": 5}', lines["X-Caller-Signature"], public_key
        )

    def test_verify_journal(self, covered_policy, market, tmp_path, capsys):
        export = tmp_path / "journal.json"
        export.write_text(json.dumps([e.model_dump(mode="json") for e in market.list_journal()]))

        assert manage.main(["verify-journal", "--input", str(export)]) == 0
        assert "[OK] Journal integrity verified OK" in capsys.readouterr().out

    def test_verify_journal_detects_tampering(self, covered_policy, market, tmp_path, capsys):
        data = [e.model_dump(mode="json") for e in market.list_journal()]
        data[1]["payload"]["name"] = "Forged"
        export = tmp_path / "journal.json"
        export.write_text(json.dumps(data))

        assert manage.main(["verify-journal", "--input", str(export)]) == 1
        assert "FAILED" in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        assert manage.main([]) == 1
