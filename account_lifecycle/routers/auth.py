"""Auth endpoints: register, confirm, login, password reset."""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from account_lifecycle.config import settings
from account_lifecycle.database import get_db
from account_lifecycle.schemas.account import (
    AccountResponse,
    EmailRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
)
from account_lifecycle.services import account as account_service
from account_lifecycle.services import reset as reset_service
from account_lifecycle.services import verification as verification_service
from account_lifecycle.services.email import Notifier
from account_lifecycle.services.store import AccountStore

router = APIRouter(tags=["auth"])

_RESEND_MESSAGE = "If that account is awaiting confirmation, a new link is on its way."
_FORGOT_MESSAGE = "If an account exists for that email, a password reset link has been sent."


def get_store(db: AsyncSession = Depends(get_db)) -> AccountStore:
    return AccountStore(db)


def get_notifier() -> Notifier:
    return Notifier()


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    data: RegisterRequest,
    store: AccountStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
) -> RegisterResponse:
    """Create an account and email a confirmation link."""
    result = await account_service.register(
        store, notifier, data.username, data.email, data.password, settings.base_url
    )
    return RegisterResponse(email_sent=result.confirmation.delivered)


@router.post("/confirm/resend", response_model=MessageResponse)
async def resend_confirmation(
    data: EmailRequest,
    store: AccountStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
) -> MessageResponse:
    await account_service.resend_confirmation(store, notifier, data.email, settings.base_url)
    return MessageResponse(message=_RESEND_MESSAGE)


@router.get("/confirm/{token}", response_model=MessageResponse)
async def confirm(
    token: str = Path(..., max_length=128),
    store: AccountStore = Depends(get_store),
) -> MessageResponse:
    """Confirm an account via the emailed link."""
    await verification_service.consume_confirmation(store, token)
    return MessageResponse(message="Your account has been confirmed. You can now log in.")


@router.post("/login", response_model=AccountResponse)
async def login(
    data: LoginRequest,
    store: AccountStore = Depends(get_store),
) -> AccountResponse:
    account = await account_service.authenticate(store, data.identifier, data.password)
    return AccountResponse(username=account.username, email=account.email, role=account.role)


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: EmailRequest,
    store: AccountStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
) -> MessageResponse:
    """Request a reset link. The answer is the same whether or not the email is known."""
    await reset_service.issue_reset(store, notifier, data.email, settings.base_url)
    return MessageResponse(message=_FORGOT_MESSAGE)


@router.post("/reset-password/{token}", response_model=MessageResponse)
async def reset_password(
    data: ResetPasswordRequest,
    token: str = Path(..., max_length=128),
    store: AccountStore = Depends(get_store),
) -> MessageResponse:
    await reset_service.consume_reset(store, token, data.password)
    return MessageResponse(message="Your password has been reset. You can now log in.")
