"""
Log Redaction & Token Encryption Tests (Unit)
=============================================

WHAT: Unit tests for redact_secrets and the Fernet token helpers.
WHY: Access tokens and app secrets must never reach logs or be stored in plaintext.

REFERENCES:
- backend/app/security.py
"""

import os

# Ensure app.security can import in test environments without a configured .env.
# This key decodes to 32 bytes and is only used to satisfy import-time validation.
os.environ["TOKEN_ENCRYPTION_KEY"] = "MDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDA="

import pytest

from app.security import decrypt_secret, encrypt_secret, redact_secrets


def test_sensitive_keys_keep_four_character_prefix() -> None:
    result = redact_secrets({"access_token": "shpat_1234567890", "shop": "my-store.myshopify.com"})

    assert result == {"access_token": "shpa****", "shop": "my-store.myshopify.com"}


def test_key_matching_is_case_insensitive_substring() -> None:
    result = redact_secrets({
        "X-Shopify-Access-Token": "shpat_abc",
        "client_secret": "supersecret",
        "Authorization": "Bearer xyz",
        "apiKey": "key_123",
    })

    assert result == {
        "X-Shopify-Access-Token": "shpa****",
        "client_secret": "supe****",
        "Authorization": "Bear****",
        "apiKey": "key_****",
    }


def test_non_string_and_empty_secrets_are_fully_masked() -> None:
    result = redact_secrets({"token": 12345, "password": "", "secret": None})

    assert result == {"token": "****", "password": "****", "secret": "****"}


def test_nested_dicts_and_lists_are_walked() -> None:
    payload = {
        "url": "https://my-store.myshopify.com/admin/api/2023-10/orders.json",
        "params": {"limit": 250, "status": "any"},
        "attempts": [{"access_token": "shpat_first"}, ("ok", {"secret": "abcdefgh"})],
    }

    result = redact_secrets(payload)

    assert result["params"] == {"limit": 250, "status": "any"}
    assert result["attempts"][0] == {"access_token": "shpa****"}
    assert result["attempts"][1] == ["ok", {"secret": "abcd****"}]


def test_input_is_not_mutated() -> None:
    payload = {"access_token": "shpat_1234567890"}

    redact_secrets(payload)

    assert payload == {"access_token": "shpat_1234567890"}


def test_circular_references_are_replaced() -> None:
    payload = {"name": "loop"}
    payload["self"] = payload

    result = redact_secrets(payload)

    assert result["name"] == "loop"
    assert result["self"] == "[Circular Reference]"


def test_exceptions_are_described() -> None:
    try:
        raise RuntimeError("upstream unavailable")
    except RuntimeError as exc:
        result = redact_secrets(exc)

    assert result["name"] == "RuntimeError"
    assert result["message"] == "upstream unavailable"
    assert result["stack"].endswith("...")
    assert len(result["stack"]) <= 503


def test_deep_nesting_is_returned_untouched_past_limit() -> None:
    payload = {"token": "shpat_deep"}
    for _ in range(15):
        payload = {"level": payload}

    result = redact_secrets(payload)

    node = result
    for _ in range(15):
        node = node["level"]
    # Past the depth limit values are returned unmasked
    assert node == {"token": "shpat_deep"}


def test_scalars_pass_through() -> None:
    assert redact_secrets("plain") == "plain"
    assert redact_secrets(42) == 42
    assert redact_secrets(None) is None


def test_encrypt_decrypt_roundtrip() -> None:
    ciphertext = encrypt_secret("shpat_secret_value", context="test")

    assert ciphertext != "shpat_secret_value"
    assert decrypt_secret(ciphertext, context="test") == "shpat_secret_value"


def test_encrypt_rejects_empty_secret() -> None:
    with pytest.raises(ValueError):
        encrypt_secret("", context="test")


def test_decrypt_rejects_tampered_ciphertext() -> None:
    with pytest.raises(ValueError):
        decrypt_secret("not-a-valid-fernet-token", context="test")
