"""
Per-request session context.

The authenticated account is never kept in module state: the session object
is built by the ``get_session`` dependency and injected where needed.

    unauthenticated --authenticate()--> authenticating --> authenticated
    authenticated --sign_out()--> unauthenticated
"""
import enum
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import InvalidCredentialsError
from core.security import decode_access_token
from models.account import Account

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


class SessionContext:

    def __init__(self) -> None:
        self.state = SessionState.UNAUTHENTICATED
        self.account: Optional[Account] = None

    @property
    def user_id(self) -> str:
        if self.state is not SessionState.AUTHENTICATED or self.account is None:
            raise InvalidCredentialsError("Not signed in")
        return self.account.id

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED

    async def authenticate(self, token: str, db: AsyncSession) -> Account:
        self.state = SessionState.AUTHENTICATING
        try:
            payload = decode_access_token(token)
            account = await db.get(Account, payload["user_id"])
            if account is None or payload.get("ver") != account.session_version:
                raise InvalidCredentialsError()
        except InvalidCredentialsError:
            self.state = SessionState.UNAUTHENTICATED
            self.account = None
            raise
        self.account = account
        self.state = SessionState.AUTHENTICATED
        return account

    async def sign_out(self, db: AsyncSession) -> None:
        """Revoke every token issued so far for this account."""
        if self.account is None:
            return
        account = await db.get(Account, self.account.id)
        if account is not None:
            account.session_version += 1
            await db.commit()
        logger.info("Account %s signed out", self.account.id)
        self.account = None
        self.state = SessionState.UNAUTHENTICATED
