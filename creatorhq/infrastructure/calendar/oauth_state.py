from __future__ import annotations

import hmac
import logging
import time


logger = logging.getLogger(__name__)

_DEV_SECRET = "creatorhq-dev-state"
DEFAULT_MAX_AGE_SECONDS = 600
_CLOCK_SKEW_SECONDS = 60


def _secret(app_secret: str | None, env: str) -> str | None:
    if app_secret:
        return app_secret
    if env.lower() in {"dev", "local", "test"}:
        logger.warning("Missing OAuth state secret; using dev secret")
        return _DEV_SECRET
    logger.error("Missing OAuth state secret")
    return None


def _sign(secret: str, payload: str) -> str:
    return hmac.new(secret.encode("utf-8"), payload.encode("utf-8"), "sha256").hexdigest()


def sign_state(creator_id: str, app_secret: str | None, env: str, issued_at: int | None = None) -> str:
    """`<creator_id>.<issued_at>.<hmac>`; the timestamp bounds how long a callback URL stays usable."""
    secret = _secret(app_secret, env)
    if secret is None:
        raise ValueError("OAUTH_STATE_SECRET is required to connect calendars.")
    payload = f"{creator_id}.{int(time.time()) if issued_at is None else issued_at}"
    return f"{payload}.{_sign(secret, payload)}"


def verify_state(
    state: str | None,
    app_secret: str | None,
    env: str,
    max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
    now: int | None = None,
) -> str | None:
    """Returns the creator id the state was issued for, or None if it was tampered with or is too old."""
    if not state:
        return None
    secret = _secret(app_secret, env)
    if secret is None:
        return None

    try:
        creator_id, issued, signature = state.rsplit(".", 2)
        issued_at = int(issued)
    except ValueError:
        return None

    if not hmac.compare_digest(_sign(secret, f"{creator_id}.{issued}"), signature):
        return None

    now = int(time.time()) if now is None else now
    age = now - issued_at
    if age > max_age_seconds or age < -_CLOCK_SKEW_SECONDS:
        logger.warning("Expired OAuth state", extra={"creator_id": creator_id, "status": f"age={age}s"})
        return None
    return creator_id
