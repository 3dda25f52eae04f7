"""
Pydantic schemas for account settings endpoints.
"""
from typing import Optional, Any
from pydantic import BaseModel, field_validator, model_validator

from watchtracker.core.validators import validate_email, blank_to_none


class ProfileUpdate(BaseModel):
    email: Optional[str] = None

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v: Any) -> Optional[str]:
        return validate_email(blank_to_none(v))


class PasswordChange(BaseModel):
    currentPassword: Optional[str] = None
    newPassword: Optional[str] = None

    @model_validator(mode="after")
    def check_passwords(self):
        if not self.currentPassword or not self.newPassword:
            raise ValueError("Current password and new password are required")
        if len(self.newPassword) < 6:
            raise ValueError("New password must be at least 6 characters long")
        if len(self.newPassword.encode("utf-8")) > 72:
            raise ValueError("Password too long (bcrypt limit 72 bytes)")
        return self


class StripeKeysUpdate(BaseModel):
    secretKey: Optional[str] = None
    publishableKey: Optional[str] = None

    @model_validator(mode="after")
    def check_keys(self):
        if not self.secretKey or not self.publishableKey:
            raise ValueError("Both secret key and publishable key are required")
        self.secretKey = self.secretKey.strip()
        self.publishableKey = self.publishableKey.strip()
        if not self.secretKey.startswith("sk_"):
            raise ValueError("Invalid secret key format")
        if not self.publishableKey.startswith("pk_"):
            raise ValueError("Invalid publishable key format")
        return self
