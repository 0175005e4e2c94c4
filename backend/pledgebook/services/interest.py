"""Pledge loan interest and settlement arithmetic.

Everything here is pure. Callers validate input first (validate_* helpers)
and then trust the calculators. Marking a record as returned is a
read-modify-write on ``is_returned`` and must be serialized by the caller
(see ``services.records.settle_record``).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from pledgebook.utils.timezone import today_local

Q2 = Decimal("0.01")

HIGH_PRINCIPAL_THRESHOLD = Decimal("10000")
HIGH_PRINCIPAL_RATE = Decimal("2.5")
STANDARD_RATE = Decimal("3.0")

DAYS_PER_MONTH = 30


class SettlementError(ValueError):
    code = "settlement_invalid"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)


class InvalidAmount(SettlementError):
    code = "amount_invalid"


class InvalidDate(SettlementError):
    code = "date_invalid"


class MissingReturnedAmount(SettlementError):
    code = "returned_amount_required"


def d2(x: Decimal) -> Decimal:
    return x.quantize(Q2, rounding=ROUND_HALF_UP)


def _to_dec(v) -> Decimal:
    return Decimal(str(v))


def _as_date(d: date | datetime) -> date:
    if isinstance(d, datetime):
        return d.date()
    return d


def _parse_number(v, error: type[SettlementError]) -> Decimal:
    if v is None or isinstance(v, bool):
        raise error("amount is required")
    try:
        dv = _to_dec(v)
    except (InvalidOperation, ValueError):
        raise error("amount must be a number")
    if not dv.is_finite():
        raise error("amount must be finite")
    return dv


def validate_amount(v) -> Decimal:
    dv = _parse_number(v, InvalidAmount)
    if dv < 0:
        raise InvalidAmount("amount must not be negative")
    return d2(dv)


def validate_pledge_date(pledge_date, as_of: date | None = None) -> date:
    if not isinstance(pledge_date, date):
        raise InvalidDate("pledge date must be a calendar date")
    as_of = _as_date(as_of) if as_of is not None else today_local()
    pledge_date = _as_date(pledge_date)
    if pledge_date > as_of:
        raise InvalidDate("pledge date is in the future")
    return pledge_date


def validate_returned_amount(v) -> Decimal:
    dv = d2(_parse_number(v, MissingReturnedAmount))
    if dv <= 0:
        raise MissingReturnedAmount("returned amount must be positive")
    return dv


def validate_returned_date(returned_date, pledge_date: date) -> datetime:
    if not isinstance(returned_date, date):
        raise InvalidDate("returned date must be a date")
    if _as_date(returned_date) < _as_date(pledge_date):
        raise InvalidDate("returned date is before the pledge date")
    return returned_date


def select_interest_rate(principal) -> Decimal:
    """Flat rate (percent) for a new pledge. Chosen once at issuance."""
    if principal is None:
        return STANDARD_RATE
    if _to_dec(principal) >= HIGH_PRINCIPAL_THRESHOLD:
        return HIGH_PRINCIPAL_RATE
    return STANDARD_RATE


@dataclass(frozen=True)
class HoldingPeriod:
    days_old: int
    months_old: int
    billable_months: int


def holding_period(pledge_date: date, as_of: date | None = None) -> HoldingPeriod:
    as_of = _as_date(as_of) if as_of is not None else today_local()
    # a pledge dated after as_of counts as zero days held
    days = max((as_of - _as_date(pledge_date)).days, 0)
    months = days // DAYS_PER_MONTH
    # first month is always charged; beyond that the latest month is free
    billable = 1 if months <= 1 else months - 1
    return HoldingPeriod(days_old=days, months_old=months, billable_months=billable)


def compute_billable_months(pledge_date: date, as_of: date | None = None) -> int:
    return holding_period(pledge_date, as_of).billable_months


@dataclass(frozen=True)
class Settlement:
    interest_amount: Decimal
    total_amount: Decimal


def compute_settlement(principal, interest_rate_percent, billable_months: int) -> Settlement:
    p = _to_dec(principal) if principal is not None else Decimal("0")
    r = _to_dec(interest_rate_percent) if interest_rate_percent is not None else Decimal("0")
    interest = d2(r / Decimal("100") * p * Decimal(int(billable_months)))
    return Settlement(interest_amount=interest, total_amount=p + interest)
