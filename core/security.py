# core/security.py
import hmac
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError

from core.config import settings
from core.errors import InvalidCredentialsError
from models.account import Account


PBKDF2_ITERATIONS = 260_000


def hash_password(password: str, salt: Optional[str] = None) -> str:
    """
    Returns "pbkdf2_sha256$iterations$salt$hexdigest".
    """
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        PBKDF2_ITERATIONS,
    ).hex()
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest}"


def verify_password(password: str, stored: Optional[str]) -> bool:
    if not stored:
        return False
    try:
        algorithm, iterations, salt, digest = stored.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    computed = hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        int(iterations),
    ).hex()
    return hmac.compare_digest(computed, digest)


def create_access_token(account: Account) -> tuple[str, int]:
    """Issue a JWT for the account. Returns (token, expiry in epoch ms)."""
    expires = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    token_payload = {
        "user_id": account.id,
        "ver": account.session_version,
        "exp": expires,
    }
    access_token = jwt.encode(token_payload, settings.JWT_SECRET, algorithm="HS256")
    return access_token, int(expires.timestamp() * 1000)


def decode_access_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
    except JWTError:
        raise InvalidCredentialsError()
    if payload.get("user_id") is None:
        raise InvalidCredentialsError()
    return payload
