from pydantic import BaseModel
from datetime import date, datetime


class OverviewOut(BaseModel):
    total_records: int
    total_gold_count: int
    total_silver_count: int
    total_both_count: int
    total_gold_weight: float
    total_silver_weight: float
    total_gold_amount: float
    total_silver_amount: float
    total_weight_grams: float
    total_amount: float
    average_weight: float
    average_amount: float


class ReturnedOut(BaseModel):
    total_records: int
    total_gold_count: int
    total_silver_count: int
    total_both_count: int
    total_amount: float
    total_weight_grams: float


class CategoriesOut(BaseModel):
    active: int
    archived: int
    big: int


class CurrentMonthOut(BaseModel):
    records: int
    weight: float
    amount: float
    gold_count: int
    silver_count: int
    both_count: int


class TrendOut(BaseModel):
    records: float
    weight: float
    amount: float


class TrendsOut(BaseModel):
    monthly: TrendOut
    yearly: TrendOut


class DashboardStatsOut(BaseModel):
    overview: OverviewOut
    returned: ReturnedOut
    categories: CategoriesOut
    current_month: CurrentMonthOut
    trends: TrendsOut


class RecentRecordOut(BaseModel):
    id: int
    sl_no: str
    date: date | None
    name: str | None
    father_name: str | None
    street: str | None
    place: str | None
    item_type: str | None
    item_category: str | None
    gold_weight_grams: float | None
    silver_weight_grams: float | None
    total_weight: float
    amount: float | None
    interest: float
    mobile: str | None
    person_image_url: str | None
    item_image_url: str | None
    created_at: datetime | None


class DashboardOut(BaseModel):
    stats: DashboardStatsOut
    recent_records: list[RecentRecordOut]
