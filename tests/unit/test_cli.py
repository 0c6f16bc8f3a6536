"""
Tests for the outbound_guard command-line interface.
"""

import json

import pytest

from outbound_guard.cli import EXIT_ALLOWED, EXIT_BLOCKED, EXIT_USAGE, main
from outbound_guard.resolver import StaticResolver, set_default_resolver


class TestCheckCommand:
    def test_allowed_url(self, capsys):
        assert main(["check", "https://api.example.com/v1"]) == EXIT_ALLOWED
        assert "ALLOWED" in capsys.readouterr().out

    def test_metadata_blocked(self, capsys):
        assert main(["check", "http://169.254.169.254/latest"]) == EXIT_BLOCKED
        out = capsys.readouterr().out
        assert "BLOCKED" in out
        assert "Cloud metadata endpoint blocked" in out

    def test_sync_check_defaults_to_api_mode(self):
        # api_mode defaults to permissive
        assert main(["check", "http://10.0.0.1/"]) == EXIT_ALLOWED

    def test_explicit_mode(self):
        assert main(["check", "http://10.0.0.1/", "--mode", "strict"]) == EXIT_BLOCKED

    def test_json_output(self, capsys):
        code = main(["check", "not-a-url", "--json"])
        payload = json.loads(capsys.readouterr().out)
        assert code == EXIT_BLOCKED
        assert payload == {
            "url": "not-a-url",
            "valid": False,
            "reason": "Invalid URL format",
            "category": "malformed_url",
        }

    def test_resolve_uses_webhook_mode(self, capsys):
        set_default_resolver(
            StaticResolver({"evil.example.com": "169.254.169.254"})
        )
        code = main(["check", "https://evil.example.com/", "--resolve", "--json"])
        payload = json.loads(capsys.readouterr().out)
        assert code == EXIT_BLOCKED
        assert payload["reason"] == "Hostname resolves to cloud metadata endpoint"

    def test_resolve_failure(self, capsys):
        set_default_resolver(StaticResolver({}))
        assert main(["check", "https://nonexistent.invalid/", "-r"]) == EXIT_BLOCKED
        assert "DNS resolution failed" in capsys.readouterr().out


class TestUsageErrors:
    def test_unknown_mode(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["check", "https://example.com", "--mode", "lax"])
        assert exc_info.value.code == EXIT_USAGE

    def test_missing_command(self):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == EXIT_USAGE

    def test_bad_configuration(self, monkeypatch, capsys):
        monkeypatch.setenv("API_SECURITY_MODE", "bogus")
        assert main(["check", "https://example.com"]) == EXIT_USAGE
        assert "API_SECURITY_MODE" in capsys.readouterr().err
