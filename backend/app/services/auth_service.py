"""Email-code authentication service."""
import logging
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import create_access_token, generate_login_code, hash_code, verify_code
from app.auth.rbac import normalize_email
from app.config import get_settings
from app.models.account import Account, EmailVerificationCode
from app.schemas.auth import AccountResponse, Token
from app.services import email_service

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def send_login_code(db: AsyncSession, raw_email: str) -> None:
    """Store a hashed 6-digit code and email it. 429 past the hourly limit."""
    settings = get_settings()
    email = normalize_email(raw_email)
    if not email or "@" not in email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="A valid email is required")

    since = datetime.now(timezone.utc) - timedelta(hours=1)
    recent = await db.execute(
        select(func.count(EmailVerificationCode.id))
        .where(EmailVerificationCode.email == email)
        .where(EmailVerificationCode.created_at >= since)
    )
    if (recent.scalar_one() or 0) >= settings.verification_codes_per_hour:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many codes requested. Try again later.",
        )

    code = generate_login_code()
    db.add(
        EmailVerificationCode(
            email=email,
            code_hash=hash_code(code),
            expires_at=datetime.now(timezone.utc) + timedelta(minutes=settings.verification_code_ttl_minutes),
            created_at=datetime.now(timezone.utc),
        )
    )
    await db.flush()

    subject, html_body = email_service.verification_code_email(code)
    result = await email_service.send_email(email, subject, html_body, text_body=f"Your login code is {code}")
    if not result.sent and not result.skipped:
        logger.warning("Verification code email not delivered to %s: %s", email, result.error)


async def verify_login_code(db: AsyncSession, raw_email: str, code: str) -> Account:
    """Check the newest open code for the email, then find or create the account."""
    settings = get_settings()
    email = normalize_email(raw_email)
    invalid = HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired code")
    if not email:
        raise invalid

    result = await db.execute(
        select(EmailVerificationCode)
        .where(EmailVerificationCode.email == email)
        .where(EmailVerificationCode.verified_at.is_(None))
        .order_by(EmailVerificationCode.created_at.desc())
        .limit(1)
    )
    record = result.scalar_one_or_none()
    now = datetime.now(timezone.utc)
    if record is None or _as_utc(record.expires_at) < now:
        raise invalid
    if record.attempts >= settings.verification_code_max_attempts:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many attempts. Request a new code.",
        )
    if not verify_code(code, record.code_hash):
        record.attempts += 1
        await db.flush()
        # the failed attempt is committed even though the request errors
        await db.commit()
        raise invalid

    record.verified_at = now
    account = (await db.execute(select(Account).where(Account.email == email))).scalar_one_or_none()
    if account is None:
        account = Account(email=email, email_verified_at=now)
        db.add(account)
    elif account.email_verified_at is None:
        account.email_verified_at = now
    await db.flush()
    logger.info("Account signed in: %s", account.id)
    return account


def account_to_response(account: Account) -> AccountResponse:
    return AccountResponse(
        id=account.id,
        email=account.email,
        name=account.display_name,
        is_admin=account.is_admin,
    )


def issue_token(account: Account) -> Token:
    token = create_access_token(data={"sub": account.id})
    return Token(access_token=token, account=account_to_response(account))
