from __future__ import annotations

from fleetsync._redact import mask_token, redact_for_log


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "serviceName": "MobileLoginSP.login",
        "requestBody": {
            "NOMUSU": {"$": "integracao"},
            "INTERNO": {"$": "s3cret"},
        },
        "headers": {"Cookie": "JSESSIONID=abc", "x-api-key": "key"},
        "cgruChave": "group",
        "cusuChave": "user",
    }

    redacted = redact_for_log(payload)
    assert redacted["requestBody"]["NOMUSU"] == {"$": "integracao"}
    assert redacted["requestBody"]["INTERNO"] == "<redacted>"
    assert redacted["headers"]["Cookie"] == "<redacted>"
    assert redacted["headers"]["x-api-key"] == "<redacted>"
    assert redacted["cgruChave"] == "<redacted>"
    assert redacted["cusuChave"] == "<redacted>"


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"sql": long_value}, max_string=10)
    assert redacted["sql"].startswith("x" * 10)
    assert "<truncated>" in redacted["sql"]


def test_mask_token_keeps_a_short_prefix() -> None:
    assert mask_token("ABCDEF123456") == "ABCDEF…"
    assert mask_token(None) == "<none>"
