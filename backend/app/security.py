"""Security utilities for access token encryption and log redaction.

WHAT:
    Fernet encryption for Shopify access tokens at rest, and a recursive
    mask applied to structured payloads before they reach the logs.

WHY:
    - A leaked database dump must not expose merchant credentials.
    - Log lines carry request params, error bodies and token responses;
      none of them may print a full token, code or app secret.

REFERENCES:
    - app/services/shop_service.py (encrypts on upsert, decrypts on read)
    - app/services/shopify_client.py (redacts request/response details)
"""

import logging
import os
import traceback
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

from app.utils.env import load_env_file

logger = logging.getLogger(__name__)


def _build_cipher() -> Fernet:
    """Create the Fernet cipher from TOKEN_ENCRYPTION_KEY, failing fast at import.

    Raises:
        RuntimeError: If the key is missing or is not a valid Fernet key.
    """
    key = os.getenv("TOKEN_ENCRYPTION_KEY")
    if not key:
        load_env_file()
        key = os.getenv("TOKEN_ENCRYPTION_KEY")

    if not key:
        raise RuntimeError(
            "TOKEN_ENCRYPTION_KEY is not set. Export a Fernet key or add it to backend/.env."
        )

    try:
        return Fernet(key)
    except (ValueError, TypeError) as exc:
        raise RuntimeError(
            "TOKEN_ENCRYPTION_KEY must be a URL-safe base64-encoded 32-byte key "
            "(see cryptography.fernet.Fernet.generate_key)."
        ) from exc


_cipher = _build_cipher()


def encrypt_secret(plaintext: str, *, context: str) -> str:
    """Encrypt a token for storage.

    `context` only labels the log line (e.g. "shopify:<domain>:access").
    """
    if not plaintext:
        raise ValueError("Refusing to encrypt an empty secret")

    token = _cipher.encrypt(plaintext.encode("utf-8"))
    logger.info("[TOKEN_ENCRYPT] Encrypted secret for %s", context)
    return token.decode("utf-8")


def decrypt_secret(ciphertext: str, *, context: str) -> str:
    """Decrypt a stored token.

    Raises:
        ValueError: If the ciphertext is empty, tampered with, or was
            produced under a different key.
    """
    if not ciphertext:
        raise ValueError("No stored secret to decrypt")

    try:
        plaintext = _cipher.decrypt(ciphertext.encode("utf-8"))
    except InvalidToken as exc:
        logger.error("[TOKEN_DECRYPT] Stored secret for %s cannot be decrypted", context)
        raise ValueError("Stored secret cannot be decrypted") from exc
    return plaintext.decode("utf-8")


# Keys are matched case-insensitively as substrings
SENSITIVE_KEYS = (
    "access_token",
    "accesstoken",
    "token",
    "secret",
    "password",
    "key",
    "authorization",
    "auth",
)

MAX_REDACT_DEPTH = 10
MAX_STACK_CHARS = 500


def _mask(value: Any) -> str:
    if isinstance(value, str) and value:
        return f"{value[:4]}****"
    return "****"


def _describe_exception(exc: BaseException) -> dict:
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return {
        "name": type(exc).__name__,
        "message": str(exc),
        "stack": f"{stack[:MAX_STACK_CHARS]}..." if stack else None,
    }


def redact_secrets(obj: Any, _visited: set | None = None, _depth: int = 0) -> Any:
    """Return a copy of ``obj`` with secret-looking values masked.

    WHAT:
        Walks dicts, lists and tuples. Values under a key containing any of
        SENSITIVE_KEYS keep at most their first 4 characters. Exceptions are
        rendered as ``{name, message, stack}`` with a truncated stack.
    WHY:
        Structured log payloads carry request params, error bodies and
        token responses; none of them may leak a credential.

    Containers seen twice are replaced by ``"[Circular Reference]"`` and
    nesting deeper than MAX_REDACT_DEPTH is returned untouched.
    """
    if isinstance(obj, BaseException):
        return _describe_exception(obj)

    if _depth > MAX_REDACT_DEPTH or not isinstance(obj, (dict, list, tuple)):
        return obj

    if _visited is None:
        _visited = set()
    if id(obj) in _visited:
        return "[Circular Reference]"
    _visited.add(id(obj))

    if isinstance(obj, (list, tuple)):
        return [redact_secrets(item, _visited, _depth + 1) for item in obj]

    redacted = {}
    for key, value in obj.items():
        lower_key = str(key).lower()
        if any(sensitive in lower_key for sensitive in SENSITIVE_KEYS):
            redacted[key] = _mask(value)
        else:
            redacted[key] = redact_secrets(value, _visited, _depth + 1)
    return redacted
