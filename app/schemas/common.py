from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated
from pydantic import AfterValidator, BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

# 金額輸出成 JSON number
Money = Annotated[Decimal, PlainSerializer(lambda v: float(v), return_type=float, when_used="json")]


def naive_utc(value: datetime | None) -> datetime | None:
    """資料庫一律存 naive UTC；帶時區的輸入（例如結尾 Z）先轉成 UTC 再去掉時區"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


UtcDatetime = Annotated[datetime, AfterValidator(naive_utc)]


class CamelModel(BaseModel):
    """API 欄位使用 camelCase，程式內用 snake_case"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class NamedOption(BaseModel):
    """客戶端送來的選項只採用名稱，價格以菜單為準"""
    model_config = ConfigDict(extra="ignore")

    name: str


def option_name(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return value.name


def paginate(total: int, page: int, limit: int) -> dict:
    return {
        "totalPages": (total + limit - 1) // limit,
        "currentPage": page,
    }
