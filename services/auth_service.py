"""
Email/password and Google sign-in.

An email maps to exactly one account. Signing up with a taken email fails,
whatever method the existing account uses, and a Google sign-in for an email
registered with a password is refused rather than silently linked.
"""
import logging
from typing import Optional

import requests
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import (
    AccountExistsError,
    AccountExistsWithDifferentCredentialError,
    BackendUnavailableError,
    InvalidCredentialsError,
)
from core.security import hash_password, verify_password
from models.account import Account

logger = logging.getLogger(__name__)

PASSWORD_PROVIDER = "password"
GOOGLE_PROVIDER = "google"


def _normalize_email(email: str) -> str:
    return email.strip().lower()


async def find_account_by_email(db: AsyncSession, email: str) -> Optional[Account]:
    result = await db.execute(
        select(Account).where(func.lower(Account.email) == _normalize_email(email))
    )
    return result.scalar_one_or_none()


async def _create_account(db: AsyncSession, **fields) -> Account:
    account = Account(**fields)
    db.add(account)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise AccountExistsError()
    await db.refresh(account)
    return account


async def sign_up(db: AsyncSession, email: str, password: str, display_name: Optional[str] = None) -> Account:
    if await find_account_by_email(db, email) is not None:
        raise AccountExistsError()
    account = await _create_account(
        db,
        email=_normalize_email(email),
        provider=PASSWORD_PROVIDER,
        password_hash=hash_password(password),
        display_name=display_name,
        session_version=0,
    )
    logger.info("Account %s signed up with password", account.id)
    return account


async def sign_in(db: AsyncSession, email: str, password: str) -> Account:
    account = await find_account_by_email(db, email)
    if account is None or not verify_password(password, account.password_hash):
        raise InvalidCredentialsError("Incorrect email or password")
    return account


def fetch_google_token_info(id_token: str) -> dict:
    """
    Validates a Google ID token through the tokeninfo endpoint.
    Raises InvalidCredentialsError for a rejected token and
    BackendUnavailableError when Google cannot be reached.
    """
    try:
        resp = requests.get(
            settings.GOOGLE_TOKENINFO_URL,
            params={"id_token": id_token},
            proxies=settings.proxies,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.warning("Google tokeninfo unreachable: %s", e)
        raise BackendUnavailableError("Google sign-in is unavailable") from e
    if resp.status_code != 200:
        raise InvalidCredentialsError("Invalid Google ID token")
    data = resp.json()
    if settings.GOOGLE_CLIENT_ID and data.get("aud") != settings.GOOGLE_CLIENT_ID:
        raise InvalidCredentialsError("Google ID token was issued for another app")
    if not data.get("email") or str(data.get("email_verified")).lower() != "true":
        raise InvalidCredentialsError("Google account email is not verified")
    return data


async def sign_in_with_google(db: AsyncSession, id_token: str) -> Account:
    info = await run_in_threadpool(fetch_google_token_info, id_token)
    account = await find_account_by_email(db, info["email"])
    if account is not None:
        if account.provider != GOOGLE_PROVIDER:
            raise AccountExistsWithDifferentCredentialError()
        return account

    account = await _create_account(
        db,
        email=_normalize_email(info["email"]),
        provider=GOOGLE_PROVIDER,
        display_name=info.get("name"),
        session_version=0,
    )
    logger.info("Account %s signed up with Google", account.id)
    return account
