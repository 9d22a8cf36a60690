# routers/auth.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import get_session
from core.database import get_db
from core.errors import JamspotError, http_status_for
from core.security import create_access_token
from core.session import SessionContext
from models.account import Account
from models.user import User
from schemas.auth import (
    GoogleSignInRequest,
    LoginRequest,
    SessionRead,
    SignUpRequest,
    TokenResponse,
)
from services import auth_service

router = APIRouter(prefix="/auth", tags=["Auth"])


async def _token_response(account: Account, db: AsyncSession) -> TokenResponse:
    access_token, expires_ms = create_access_token(account)
    has_profile = await db.get(User, account.id) is not None
    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        user_id=account.id,
        has_profile=has_profile,
        expires_in_ms=expires_ms,
    )


@router.post(
    "/signup",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account with email and password",
)
async def signup(payload: SignUpRequest, db: AsyncSession = Depends(get_db)):
    try:
        account = await auth_service.sign_up(db, payload.email, payload.password, payload.display_name)
    except JamspotError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.detail)
    return await _token_response(account, db)


@router.post("/login", response_model=TokenResponse, summary="Sign in with email and password")
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    try:
        account = await auth_service.sign_in(db, payload.email, payload.password)
    except JamspotError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.detail)
    return await _token_response(account, db)


@router.post("/google", response_model=TokenResponse, summary="Sign in with a Google ID token")
async def google_sign_in(payload: GoogleSignInRequest, db: AsyncSession = Depends(get_db)):
    try:
        account = await auth_service.sign_in_with_google(db, payload.id_token)
    except JamspotError as exc:
        raise HTTPException(status_code=http_status_for(exc), detail=exc.detail)
    return await _token_response(account, db)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, summary="Sign out everywhere")
async def logout(
    db: AsyncSession = Depends(get_db),
    session: SessionContext = Depends(get_session),
):
    await session.sign_out(db)
    return


@router.get("/me", response_model=SessionRead, summary="Current session")
async def read_session(session: SessionContext = Depends(get_session)):
    return SessionRead(state=session.state.value, user_id=session.user_id)
