from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import secrets
import threading
import time
from typing import Any


SESSION_TTL_SECONDS = 60 * 60 * 12
PBKDF2_ITERATIONS = 120000

_LOCK = threading.Lock()
_SESSIONS: dict[str, dict[str, Any]] = {}
_REVOKED_TOKENS: dict[str, float] = {}


def _require_session_secret() -> bytes:
    raw = (os.environ.get("SESSION_SIGNING_SECRET") or "").strip()
    if len(raw) < 32:
        raise RuntimeError("SESSION_SIGNING_SECRET must be set and at least 32 characters long.")
    return raw.encode("utf-8")


_SESSION_SECRET = _require_session_secret()


def new_salt() -> str:
    return secrets.token_hex(16)


def hash_password(password: str, salt: str) -> str:
    raw = hashlib.pbkdf2_hmac(
        "sha256",
        (password or "").encode("utf-8"),
        salt.encode("utf-8"),
        PBKDF2_ITERATIONS,
    )
    return raw.hex()


def verify_password(stored_hash: str | None, stored_salt: str | None, candidate: str | None) -> bool:
    if not stored_hash or not stored_salt:
        return False
    supplied = hash_password((candidate or "").strip(), stored_salt)
    return hmac.compare_digest(supplied, stored_hash)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(encoded: str) -> bytes:
    return base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4))


def _prune_revoked_unlocked(now: float) -> None:
    for revoked_token, revoked_exp in list(_REVOKED_TOKENS.items()):
        if now >= revoked_exp:
            _REVOKED_TOKENS.pop(revoked_token, None)


def _prune_sessions_unlocked(now: float) -> None:
    for session_token, session in list(_SESSIONS.items()):
        if now >= float(session.get("expiresAt") or 0.0):
            _SESSIONS.pop(session_token, None)


def create_session(payload: dict[str, Any]) -> str:
    session_payload = dict(payload)
    session_payload["expiresAt"] = time.time() + SESSION_TTL_SECONDS
    body = json.dumps(session_payload, ensure_ascii=True, separators=(",", ":")).encode("utf-8")
    encoded = _b64encode(body)
    signature = hmac.new(_SESSION_SECRET, encoded.encode("ascii"), hashlib.sha256).digest()
    token = f"{encoded}.{_b64encode(signature)}"
    with _LOCK:
        _prune_sessions_unlocked(time.time())
        _SESSIONS[token] = session_payload
    return token


def get_session(token: str | None) -> dict[str, Any] | None:
    if not token:
        return None
    now = time.time()
    try:
        encoded, encoded_sig = token.split(".", 1)
        expected_sig = hmac.new(_SESSION_SECRET, encoded.encode("ascii"), hashlib.sha256).digest()
        if not hmac.compare_digest(expected_sig, _b64decode(encoded_sig)):
            return None
        decoded_session = json.loads(_b64decode(encoded).decode("utf-8"))
    except (ValueError, UnicodeError):
        return None

    if not isinstance(decoded_session, dict):
        return None

    expires_at = float(decoded_session.get("expiresAt") or 0.0)
    with _LOCK:
        if now >= expires_at:
            _SESSIONS.pop(token, None)
            return None
        _prune_revoked_unlocked(now)
        _prune_sessions_unlocked(now)
        if token in _REVOKED_TOKENS:
            _SESSIONS.pop(token, None)
            return None
        _SESSIONS[token] = decoded_session
        return dict(decoded_session)


def remove_session(token: str | None) -> None:
    if not token:
        return
    with _LOCK:
        session = _SESSIONS.pop(token, None)
        now = time.time()
        expires_at = float((session or {}).get("expiresAt") or now + SESSION_TTL_SECONDS)
        if expires_at > now:
            _REVOKED_TOKENS[token] = expires_at
