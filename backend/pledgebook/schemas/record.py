import re
import datetime as dt
from typing import Literal

from pydantic import BaseModel, field_validator, model_validator

ItemType = Literal["Gold", "Silver", "Both"]
ItemCategory = Literal["active", "archived", "big"]
RecordStatus = Literal["active", "archived", "big", "returned"]
SortBy = Literal["date", "created_at", "amount", "weight"]

MOBILE_RE = re.compile(r"^[0-9]{10}$")


def check_weights(item_type: str | None, gold: float | None, silver: float | None) -> None:
    if item_type in ("Gold", "Both") and not gold:
        raise ValueError("gold weight is required")
    if item_type in ("Silver", "Both") and not silver:
        raise ValueError("silver weight is required")


def _finite(v: float, what: str) -> float:
    if v != v:
        raise ValueError(f"{what} must be a number")
    if v == float("inf") or v == float("-inf"):
        raise ValueError(f"{what} must be finite")
    return v


class _RecordFields(BaseModel):
    @field_validator("sl_no", "name", "father_name", "street", "place", check_fields=False)
    @classmethod
    def text_trim(cls, v: str | None):
        if v is None:
            return None
        v = str(v).strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("item", check_fields=False)
    @classmethod
    def item_trim(cls, v: str | None):
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("mobile", check_fields=False)
    @classmethod
    def mobile_digits(cls, v: str | None):
        if v is None:
            return None
        v = v.strip()
        if not MOBILE_RE.match(v):
            raise ValueError("mobile must be 10 digits")
        return v

    @field_validator("gold_weight_grams", "silver_weight_grams", check_fields=False)
    @classmethod
    def weight_positive(cls, v: float | None):
        if v is None:
            return None
        _finite(v, "weight")
        if v <= 0:
            raise ValueError("weight must be positive")
        return v

    @field_validator("amount", check_fields=False)
    @classmethod
    def amount_non_negative(cls, v: float | None):
        if v is None:
            return None
        _finite(v, "amount")
        if v < 0:
            raise ValueError("amount must not be negative")
        return v

    @field_validator("person_image_url", "item_image_url", "item_return_image_url", check_fields=False)
    @classmethod
    def url_http(cls, v: str | None):
        if v is None:
            return None
        v = v.strip()
        if not v:
            return None
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("image url must be http(s)")
        return v


class RecordCreate(_RecordFields):
    sl_no: str
    date: dt.date | None = None
    name: str
    father_name: str
    street: str
    place: str
    mobile: str
    item: str | None = None
    item_type: ItemType
    item_category: ItemCategory = "active"
    gold_weight_grams: float | None = None
    silver_weight_grams: float | None = None
    amount: float
    person_image_url: str | None = None
    item_image_url: str | None = None
    item_return_image_url: str | None = None

    @model_validator(mode="after")
    def weights_match_item_type(self):
        check_weights(self.item_type, self.gold_weight_grams, self.silver_weight_grams)
        return self


class RecordUpdate(_RecordFields):
    sl_no: str | None = None
    date: dt.date | None = None
    name: str | None = None
    father_name: str | None = None
    street: str | None = None
    place: str | None = None
    mobile: str | None = None
    item: str | None = None
    item_type: ItemType | None = None
    item_category: ItemCategory | None = None
    gold_weight_grams: float | None = None
    silver_weight_grams: float | None = None
    amount: float | None = None
    person_image_url: str | None = None
    item_image_url: str | None = None

    class Config:
        # settlement fields only change through the return action
        extra = "forbid"


class ReturnIn(_RecordFields):
    returned_amount: float | None = None
    returned_date: dt.datetime | None = None
    item_return_image_url: str | None = None


class RecordOut(BaseModel):
    id: int
    sl_no: str
    date: dt.date | None
    name: str | None
    father_name: str | None
    street: str | None
    place: str | None
    mobile: str | None
    item: str | None
    item_type: str | None
    item_category: str | None
    gold_weight_grams: float | None
    silver_weight_grams: float | None
    total_weight_grams: float
    amount: float | None
    interest: float
    is_returned: bool
    returned_amount: float | None
    returned_date: dt.datetime | None
    person_image_url: str | None
    item_image_url: str | None
    item_return_image_url: str | None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None


class RecordListItem(RecordOut):
    days_old: int
    months_old: int
    interest_months: int
    calculated_interest_amount: float
    calculated_total_amount: float


class RecordFilterStats(BaseModel):
    total_weight: float = 0.0
    total_amount: float = 0.0
    gold_weight: float = 0.0
    gold_amount: float = 0.0
    silver_weight: float = 0.0
    silver_amount: float = 0.0
    gold_count: int = 0
    silver_count: int = 0
    both_count: int = 0
    big_records: int = 0


class RecordListOut(BaseModel):
    data: list[RecordListItem]
    total: int
    page: int
    limit: int
    stats: RecordFilterStats


class RecordStatsOut(BaseModel):
    total_records: int
    total_gold_count: int
    total_silver_count: int
    total_weight_grams: float
    total_amount: float


class SettlementQuoteOut(BaseModel):
    record_id: int
    as_of: dt.date
    principal_amount: float
    interest_rate_percent: float
    days_old: int
    months_old: int
    billable_months: int
    interest_amount: float
    total_amount: float
    is_returned: bool
    returned_amount: float | None = None
