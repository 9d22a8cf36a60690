from typing import Optional

from fastapi import Depends, HTTPException, Query
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from starlette import status

from core.database import AsyncSessionLocal, get_db
from core.errors import InvalidCredentialsError
from core.session import SessionContext

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def get_session(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> SessionContext:
    session = SessionContext()
    try:
        await session.authenticate(token, db)
    except InvalidCredentialsError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.detail,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


async def get_websocket_session(
    token: str = Query(..., description="Access token"),
) -> Optional[SessionContext]:
    """
    Browsers cannot set headers on a WebSocket handshake, so the token comes
    in the query string. Returns None when the token does not validate.
    """
    session = SessionContext()
    async with AsyncSessionLocal() as db:
        try:
            await session.authenticate(token, db)
        except InvalidCredentialsError:
            return None
    return session
