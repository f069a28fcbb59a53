from __future__ import annotations

import re
from uuid import UUID

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, field_validator

from coachbook.schemas.common import NonBlankStr, rule_error

# Han ideographs (CJK unified + extension A + compatibility) or Latin letters.
_NAME_RE = re.compile(r"^[\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaffa-zA-Z]{2,10}$")
_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_PASSWORD_RE = re.compile(r'^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)[A-Za-z\d!@#$%^&*(),.?":{}|<>]{8,16}$')

EMAIL_FORMAT_MESSAGE = "Email 格式不正確"
PASSWORD_RULES_MESSAGE = "密碼不符合規則，需要包含英文數字大小寫，最短 8 個字，最長 16 個字"
USER_NAME_RULES_MESSAGE = "使用者名稱不符合規則，最少 2 個字，最多 10 個字，不可包含任何特殊符號與空白"


def check_user_name(v: str) -> str:
    if not _NAME_RE.match(v):
        raise rule_error(USER_NAME_RULES_MESSAGE)
    return v


def check_email(v: str) -> str:
    if not _EMAIL_RE.match(v):
        raise rule_error(EMAIL_FORMAT_MESSAGE)
    # Same checks EmailStr applies (dot placement, reserved domains), without DNS.
    try:
        validate_email(v, check_deliverability=False)
    except EmailNotValidError:
        raise rule_error(EMAIL_FORMAT_MESSAGE) from None
    return v


def check_password(v: str) -> str:
    if not _PASSWORD_RE.match(v):
        raise rule_error(PASSWORD_RULES_MESSAGE)
    return v


class SignupRequest(BaseModel):
    name: NonBlankStr
    email: NonBlankStr
    password: NonBlankStr

    @field_validator("name")
    @classmethod
    def _name_rules(cls, v: str) -> str:
        return check_user_name(v)

    @field_validator("email")
    @classmethod
    def _email_rules(cls, v: str) -> str:
        return check_email(v).lower()

    @field_validator("password")
    @classmethod
    def _password_rules(cls, v: str) -> str:
        return check_password(v)


class LoginRequest(BaseModel):
    email: NonBlankStr
    password: NonBlankStr

    @field_validator("email")
    @classmethod
    def _email_rules(cls, v: str) -> str:
        return check_email(v).lower()

    @field_validator("password")
    @classmethod
    def _password_rules(cls, v: str) -> str:
        return check_password(v)


class PasswordChangeRequest(BaseModel):
    password: NonBlankStr
    new_password: NonBlankStr
    confirm_new_password: NonBlankStr

    @field_validator("new_password", "confirm_new_password")
    @classmethod
    def _password_rules(cls, v: str) -> str:
        return check_password(v)


class SignupUser(BaseModel):
    id: UUID
    name: str


class SignupData(BaseModel):
    user: SignupUser


class LoginUser(BaseModel):
    name: str


class LoginData(BaseModel):
    token: str
    user: LoginUser
