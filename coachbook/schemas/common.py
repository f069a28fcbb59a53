from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, Generic, Literal, TypeVar

from pydantic import AfterValidator, BaseModel, Field, PlainSerializer
from pydantic_core import PydanticCustomError

from coachbook.core.errors import FIELD_RULE_ERROR

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    status: Literal["success"] = "success"
    data: T


class OkEnvelope(BaseModel):
    status: Literal["success"] = "success"
    data: None = None


def rule_error(message: str) -> PydanticCustomError:
    # Shown to the caller verbatim by the validation error handler.
    return PydanticCustomError(FIELD_RULE_ERROR, message)


def _non_blank(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("blank")
    return v


_URL_RE = re.compile(r"^(https?://)([\w-]+(\.[\w-]+)+)(:\d+)?(/[^\s]*)?$")


def _http_url(v: str) -> str:
    if not _URL_RE.match(v):
        raise ValueError("invalid url")
    return v


def _as_utc(v: datetime) -> datetime:
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


def _money_to_number(v: Decimal) -> int | float:
    return int(v) if v == v.to_integral_value() else float(v)


NonBlankStr = Annotated[str, AfterValidator(_non_blank)]
HttpUrlStr = Annotated[str, AfterValidator(_http_url)]
NaturalInt = Annotated[int, Field(strict=True, ge=0)]
UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]
Money = Annotated[Decimal, PlainSerializer(_money_to_number, return_type=Any, when_used="json")]
