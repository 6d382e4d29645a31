"""
Pydantic schemas for customer account e-mail endpoints.
"""

from pydantic import BaseModel, EmailStr, Field


class AccountEmailRequest(BaseModel):
    """Request a verification or password reset e-mail"""
    email: EmailStr = Field(..., description="Email address associated with the account")


class TokenValidate(BaseModel):
    """Token from an e-mailed link"""
    token: str = Field(..., min_length=1, description="Token from the e-mailed link")


class EmailVerifyConfirm(TokenValidate):
    """Confirm e-mail ownership"""
    pass


class PasswordResetConfirm(BaseModel):
    """Set a new password with a reset token"""
    token: str = Field(..., min_length=1, description="Password reset token from email")
    new_password: str = Field(..., min_length=1, description="New password (policy enforced server-side)")


class AccountResponse(BaseModel):
    """Generic account operation response"""
    message: str = Field(..., description="Status message")
    success: bool = Field(..., description="Whether the operation succeeded")
