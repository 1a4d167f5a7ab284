from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

SECRET_KEY_LENGTH = 12


class StudentLoginIn(BaseModel):
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=255)


class RegisterIn(BaseModel):
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=255)
    secret_key: str

    @field_validator("secret_key")
    @classmethod
    def normalize_key(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != SECRET_KEY_LENGTH or not v.isalnum():
            raise ValueError("Secret key must be 12 letters or digits.")
        return v


class OtpSendIn(BaseModel):
    email: EmailStr


class OtpVerifyIn(BaseModel):
    email: EmailStr
    otp: str = Field(pattern=r"^\d{6}$")


class DemoLoginIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class AdminLoginIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)
    passcode: str = Field(pattern=r"^\d{4}$", description="4-digit birthday passcode (DDMM)")


class MeOut(BaseModel):
    id: Optional[int] = None
    key: str
    email: str
    full_name: str
    role: str
    is_demo: bool


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: MeOut


class MessageOut(BaseModel):
    success: bool
    message: str
