"""Auth API routes."""
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import get_current_user
from app.database import get_db
from app.models.account import Account
from app.schemas.auth import AccountResponse, SendCodeRequest, Token, VerifyCodeRequest
from app.services.auth_service import account_to_response, issue_token, send_login_code, verify_login_code

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/send-code")
async def send_code(
    data: SendCodeRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    await send_login_code(db, data.email)
    return {"success": True}


@router.post("/verify-code", response_model=Token)
async def verify_code(
    data: VerifyCodeRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    account = await verify_login_code(db, data.email, data.code)
    return issue_token(account)


@router.get("/me", response_model=AccountResponse, response_model_by_alias=True)
async def me(user: Annotated[Account, Depends(get_current_user)]):
    return account_to_response(user)
