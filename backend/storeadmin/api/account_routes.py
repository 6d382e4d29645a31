"""
Customer account e-mail routes.

Endpoints:
- POST /account/verify-email/request - Send an e-mail verification link
- POST /account/verify-email/confirm - Confirm e-mail with token
- POST /account/password-reset/request - Send a password reset link
- POST /account/password-reset/validate - Check a reset token
- POST /account/password-reset/confirm - Set a new password with token
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from storeadmin.config import get_settings
from storeadmin.database import get_db
from storeadmin.dependencies import get_token_mailer, get_redemption_service
from storeadmin.error_handlers import BadRequestError
from storeadmin.middleware.rate_limit import limiter
from storeadmin.models import EmailType
from storeadmin.schemas.account_schemas import (
    AccountEmailRequest,
    EmailVerifyConfirm,
    TokenValidate,
    PasswordResetConfirm,
    AccountResponse,
)
from storeadmin.services.customer_repository import CustomerRepository
from storeadmin.services.errors import TokenRedemptionError
from storeadmin.services.token_mailer import TokenMailer
from storeadmin.services.token_redemption_service import TokenRedemptionService

router = APIRouter(prefix="/account", tags=["Account"])
settings = get_settings()
logger = logging.getLogger(__name__)

VERIFY_REQUEST_MESSAGE = "If an unverified account exists with this email, a verification link has been sent."
RESET_REQUEST_MESSAGE = "If an account exists with this email, a reset link has been sent."


# ==================== E-mail Verification ====================

@router.post(
    "/verify-email/request",
    response_model=AccountResponse,
    status_code=status.HTTP_200_OK,
    summary="Request e-mail verification link"
)
@limiter.limit(settings.account_email_rate_limit)
def request_email_verification(
    request: Request,
    body: AccountEmailRequest,
    db: Session = Depends(get_db),
    mailer: TokenMailer = Depends(get_token_mailer)
):
    """
    Send an e-mail verification link.

    - Same response whether or not the account exists (no e-mail enumeration)
    - Link expires in 1 hour; requesting again replaces the previous link
    - Delivery or database failures return 500 with a generic message
    """
    customer = CustomerRepository(db).get_by_email(body.email)

    if not customer:
        logger.info(f"Verification requested for unknown email: {body.email}")
    elif customer.email_verified:
        logger.info(f"Verification requested for already verified customer {customer.id}")
    else:
        mailer.send_email(email=customer.email, email_type=EmailType.VERIFY, user_id=customer.id)

    return AccountResponse(success=True, message=VERIFY_REQUEST_MESSAGE)


@router.post(
    "/verify-email/confirm",
    response_model=AccountResponse,
    status_code=status.HTTP_200_OK,
    summary="Confirm e-mail address with token"
)
def confirm_email_verification(
    body: EmailVerifyConfirm,
    service: TokenRedemptionService = Depends(get_redemption_service)
):
    """
    Mark the e-mail address verified.

    **Response:**
    - 200: E-mail verified
    - 400: Token is invalid or expired
    """
    try:
        service.verify_email(body.token)
    except TokenRedemptionError as e:
        raise BadRequestError(str(e), error_code="INVALID_TOKEN")

    return AccountResponse(success=True, message="Email address verified.")


# ==================== Password Reset ====================

@router.post(
    "/password-reset/request",
    response_model=AccountResponse,
    status_code=status.HTTP_200_OK,
    summary="Request password reset link"
)
@limiter.limit(settings.account_email_rate_limit)
def request_password_reset(
    request: Request,
    body: AccountEmailRequest,
    db: Session = Depends(get_db),
    mailer: TokenMailer = Depends(get_token_mailer)
):
    """
    Send a password reset link.

    - Same response whether or not the account exists (no e-mail enumeration)
    - Link expires in 1 hour; only the latest link is valid
    - Delivery or database failures return 500 with a generic message
    """
    customer = CustomerRepository(db).get_by_email(body.email)

    if customer:
        mailer.send_email(email=customer.email, email_type=EmailType.RESET, user_id=customer.id)
    else:
        logger.info(f"Password reset requested for unknown email: {body.email}")

    return AccountResponse(success=True, message=RESET_REQUEST_MESSAGE)


@router.post(
    "/password-reset/validate",
    response_model=AccountResponse,
    status_code=status.HTTP_200_OK,
    summary="Validate password reset token"
)
def validate_reset_token(
    body: TokenValidate,
    service: TokenRedemptionService = Depends(get_redemption_service)
):
    """
    Check a reset token before showing the new-password form.

    **Response:**
    - 200: Token is valid
    - 400: Token is invalid or expired
    """
    if not service.validate_token(EmailType.RESET, body.token):
        raise BadRequestError("Invalid or expired reset token", error_code="INVALID_TOKEN")

    return AccountResponse(success=True, message="Token is valid")


@router.post(
    "/password-reset/confirm",
    response_model=AccountResponse,
    status_code=status.HTTP_200_OK,
    summary="Reset password with token"
)
def confirm_password_reset(
    body: PasswordResetConfirm,
    service: TokenRedemptionService = Depends(get_redemption_service)
):
    """
    Set a new password using the reset token.

    **Response:**
    - 200: Password reset successful
    - 400: Invalid token or password policy violation
    """
    try:
        service.reset_password(token=body.token, new_password=body.new_password)
    except TokenRedemptionError as e:
        raise BadRequestError(str(e), error_code="PASSWORD_RESET_FAILED")

    return AccountResponse(
        success=True,
        message="Password has been reset successfully. Please login with your new password."
    )
