"""Unit tests for log redaction."""

from deploy_orchestrator.utils.logging import redact, redact_secrets

TOKEN = "ver_secret_token_123"


def test_redact_literal_token():
    assert redact(f"bad {TOKEN}", TOKEN) == "bad [TOKEN]"
    assert redact("tok-without-prefix leaked", "tok-without-prefix") == "[TOKEN] leaked"


def test_redact_token_shaped_values():
    assert redact("token ver_other_123 rejected") == "token [TOKEN] rejected"
    assert redact("plain message", TOKEN) == "plain message"


def test_processor_hides_secret_keys():
    event = {
        "event": "vercel.create_deployment",
        "token": "abc",
        "Authorization": "Bearer abc",
        "error": f"Invalid token {TOKEN}",
        "attempt": 1,
    }

    result = redact_secrets(None, "info", event)

    assert result["token"] == "[TOKEN]"
    assert result["Authorization"] == "[TOKEN]"
    assert result["error"] == "Invalid token [TOKEN]"
    assert result["attempt"] == 1
    assert result["event"] == "vercel.create_deployment"
