from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Select, case, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pledgebook.models.record import Record
from pledgebook.services.interest import (
    compute_settlement,
    holding_period,
    select_interest_rate,
    validate_amount,
    validate_pledge_date,
    validate_returned_amount,
    validate_returned_date,
)
from pledgebook.utils.timezone import now_local, today_local

logger = logging.getLogger(__name__)


class RecordConflict(Exception):
    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


@dataclass
class RecordFilters:
    search: str | None = None
    item_type: str | None = None
    status: str | None = None
    street: str | None = None
    place: str | None = None
    date_from: date | None = None
    date_to: date | None = None


def _f(v) -> float | None:
    return float(v) if v is not None else None


def total_weight_expr():
    return func.coalesce(Record.gold_weight_grams, 0) + func.coalesce(Record.silver_weight_grams, 0)


def live_records() -> Select:
    return select(Record).where(Record.deleted_at.is_(None))


def get_record(s: Session, record_id: int) -> Record | None:
    return s.execute(live_records().where(Record.id == record_id)).scalar_one_or_none()


def escape_like(v: str) -> str:
    return v.replace("/", "//").replace("%", "/%").replace("_", "/_")


def filter_conditions(f: RecordFilters) -> list:
    conds = [Record.deleted_at.is_(None)]

    if f.search:
        like = f"%{escape_like(f.search.strip())}%"
        conds.append(
            or_(
                Record.name.ilike(like, escape="/"),
                Record.father_name.ilike(like, escape="/"),
                Record.place.ilike(like, escape="/"),
                Record.mobile.ilike(like, escape="/"),
                Record.sl_no.ilike(like, escape="/"),
            )
        )
    if f.item_type:
        conds.append(Record.item_type == f.item_type)
    if f.status:
        if f.status == "returned":
            conds.append(Record.is_returned.is_(True))
        else:
            # category views never show returned items
            conds.append(Record.item_category == f.status)
            conds.append(Record.is_returned.is_(False))
    if f.street and f.street.strip():
        conds.append(Record.street.ilike(escape_like(f.street.strip()), escape="/"))
    if f.place and f.place.strip():
        conds.append(Record.place.ilike(escape_like(f.place.strip()), escape="/"))
    if f.date_from is not None:
        conds.append(Record.date >= f.date_from)
    if f.date_to is not None:
        conds.append(Record.date <= f.date_to)
    return conds


def _order_by(sort_by: str, sort_dir: str):
    col = {
        "date": Record.date,
        "created_at": Record.created_at,
        "amount": Record.amount,
        "weight": total_weight_expr(),
    }.get(sort_by, Record.date)
    if sort_dir == "asc":
        return [col.asc(), Record.id.asc()]
    return [col.desc(), Record.id.desc()]


def record_out(r: Record) -> dict:
    gold = _f(r.gold_weight_grams)
    silver = _f(r.silver_weight_grams)
    return {
        "id": r.id,
        "sl_no": r.sl_no,
        "date": r.date,
        "name": r.name,
        "father_name": r.father_name,
        "street": r.street,
        "place": r.place,
        "mobile": r.mobile,
        "item": r.item,
        "item_type": r.item_type,
        "item_category": r.item_category,
        "gold_weight_grams": gold,
        "silver_weight_grams": silver,
        "total_weight_grams": (gold or 0.0) + (silver or 0.0),
        "amount": _f(r.amount),
        "interest": float(r.interest or 0),
        "is_returned": bool(r.is_returned),
        "returned_amount": _f(r.returned_amount),
        "returned_date": r.returned_date,
        "person_image_url": r.person_image_url,
        "item_image_url": r.item_image_url,
        "item_return_image_url": r.item_return_image_url,
        "created_at": r.created_at,
        "updated_at": r.updated_at,
    }


def quote_record(r: Record, as_of: date | None = None) -> dict:
    as_of = as_of or today_local()
    hp = holding_period(r.date or as_of, as_of)
    st = compute_settlement(r.amount, r.interest, hp.billable_months)
    return {
        "record_id": r.id,
        "as_of": as_of,
        "principal_amount": float(r.amount or 0),
        "interest_rate_percent": float(r.interest or 0),
        "days_old": hp.days_old,
        "months_old": hp.months_old,
        "billable_months": hp.billable_months,
        "interest_amount": float(st.interest_amount),
        "total_amount": float(st.total_amount),
        "is_returned": bool(r.is_returned),
        "returned_amount": _f(r.returned_amount),
    }


def enriched_record_out(r: Record, as_of: date) -> dict:
    q = quote_record(r, as_of)
    out = record_out(r)
    out.update(
        {
            "days_old": q["days_old"],
            "months_old": q["months_old"],
            "interest_months": q["billable_months"],
            "calculated_interest_amount": q["interest_amount"],
            "calculated_total_amount": q["total_amount"],
        }
    )
    return out


def filter_stats(s: Session, conds: list) -> dict:
    weight = total_weight_expr()
    is_gold = Record.item_type == "Gold"
    is_silver = Record.item_type == "Silver"
    row = s.execute(
        select(
            func.coalesce(func.sum(weight), 0),
            func.coalesce(func.sum(Record.amount), 0),
            func.coalesce(func.sum(case((is_gold, weight))), 0),
            func.coalesce(func.sum(case((is_gold, Record.amount))), 0),
            func.coalesce(func.sum(case((is_silver, weight))), 0),
            func.coalesce(func.sum(case((is_silver, Record.amount))), 0),
            func.count(case((is_gold, 1))),
            func.count(case((is_silver, 1))),
            func.count(case((Record.item_type == "Both", 1))),
            func.count(case((Record.item_category == "big", 1))),
        ).where(*conds)
    ).one()
    return {
        "total_weight": float(row[0] or 0),
        "total_amount": float(row[1] or 0),
        "gold_weight": float(row[2] or 0),
        "gold_amount": float(row[3] or 0),
        "silver_weight": float(row[4] or 0),
        "silver_amount": float(row[5] or 0),
        "gold_count": int(row[6] or 0),
        "silver_count": int(row[7] or 0),
        "both_count": int(row[8] or 0),
        "big_records": int(row[9] or 0),
    }


def list_records(
    s: Session,
    f: RecordFilters,
    page: int = 1,
    limit: int = 20,
    sort_by: str = "date",
    sort_dir: str = "desc",
    as_of: date | None = None,
) -> dict:
    page = max(1, int(page))
    limit = min(100, max(1, int(limit)))
    as_of = as_of or today_local()
    conds = filter_conditions(f)

    rows = (
        s.execute(
            select(Record)
            .where(*conds)
            .order_by(*_order_by(sort_by, sort_dir))
            .offset((page - 1) * limit)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    total = s.execute(select(func.count(Record.id)).where(*conds)).scalar_one()

    return {
        "data": [enriched_record_out(r, as_of) for r in rows],
        "total": int(total),
        "page": page,
        "limit": limit,
        "stats": filter_stats(s, conds),
    }


def filtered_records(s: Session, f: RecordFilters, sort_by: str = "date", sort_dir: str = "desc") -> list[Record]:
    return (
        s.execute(select(Record).where(*filter_conditions(f)).order_by(*_order_by(sort_by, sort_dir)))
        .scalars()
        .all()
    )


def sl_no_taken(s: Session, sl_no: str, exclude_id: int | None = None) -> bool:
    # soft-deleted rows still hold their serial number in the unique index
    q = select(Record.id).where(Record.sl_no == sl_no)
    if exclude_id is not None:
        q = q.where(Record.id != exclude_id)
    return s.execute(q.limit(1)).first() is not None


def _commit_or_conflict(s: Session, sl_no: str) -> None:
    # a concurrent writer can claim the serial number after sl_no_taken
    try:
        s.commit()
    except IntegrityError:
        s.rollback()
        logger.warning("serial number conflict on commit sl_no=%s", sl_no)
        raise RecordConflict("sl_no_exists")


def create_record(s: Session, data: dict, as_of: date | None = None) -> Record:
    as_of = as_of or today_local()
    amount = validate_amount(data.get("amount"))
    pledge_date = validate_pledge_date(data.get("date") or as_of, as_of)

    if sl_no_taken(s, data["sl_no"]):
        raise RecordConflict("sl_no_exists")

    fields = dict(data)
    fields["date"] = pledge_date
    fields["amount"] = amount
    fields["interest"] = select_interest_rate(amount)

    r = Record(**fields)
    s.add(r)
    _commit_or_conflict(s, fields["sl_no"])
    s.refresh(r)
    logger.info("record created id=%s sl_no=%s amount=%s interest=%s", r.id, r.sl_no, amount, r.interest)
    return r


def update_record(s: Session, r: Record, changes: dict, as_of: date | None = None) -> Record:
    as_of = as_of or today_local()
    if "amount" in changes:
        changes = {**changes, "amount": validate_amount(changes["amount"])}
    if changes.get("date") is not None:
        validate_pledge_date(changes["date"], as_of)
    if changes.get("sl_no") and changes["sl_no"] != r.sl_no and sl_no_taken(s, changes["sl_no"], r.id):
        raise RecordConflict("sl_no_exists")

    # interest stays at the rate fixed when the pledge was issued
    for k, v in changes.items():
        setattr(r, k, v)
    s.add(r)
    _commit_or_conflict(s, changes.get("sl_no", r.sl_no))
    s.refresh(r)
    return r


def soft_delete_record(s: Session, r: Record) -> None:
    r.deleted_at = now_local().replace(tzinfo=None)
    s.add(r)
    s.commit()
    logger.info("record soft-deleted id=%s sl_no=%s", r.id, r.sl_no)


def settle_record(
    s: Session,
    record_id: int,
    returned_amount,
    returned_date: datetime | None = None,
    item_return_image_url: str | None = None,
) -> Record:
    amount = validate_returned_amount(returned_amount)
    when = returned_date or now_local().replace(tzinfo=None)

    current = get_record(s, record_id)
    if current is None:
        raise LookupError("record_not_found")
    validate_returned_date(when, current.date)

    values = {"is_returned": True, "returned_amount": amount, "returned_date": when}
    if item_return_image_url:
        values["item_return_image_url"] = item_return_image_url

    # compare-and-swap on the flag: only one concurrent return can win
    res = s.execute(
        update(Record)
        .where(Record.id == record_id, Record.deleted_at.is_(None), Record.is_returned.is_(False))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        r = get_record(s, record_id)
        if r is None:
            raise LookupError("record_not_found")
        logger.warning("settlement rejected, record already returned id=%s", record_id)
        raise RecordConflict("record_already_returned")
    s.commit()

    r = get_record(s, record_id)
    s.refresh(r)
    logger.info("record returned id=%s returned_amount=%s", record_id, amount)
    return r


def global_stats(s: Session) -> dict:
    row = s.execute(
        select(
            func.count(Record.id),
            func.count(case((Record.item_type == "Gold", 1))),
            func.count(case((Record.item_type == "Silver", 1))),
            func.coalesce(func.sum(total_weight_expr()), 0),
            func.coalesce(func.sum(Record.amount), 0),
        ).where(Record.deleted_at.is_(None))
    ).one()
    return {
        "total_records": int(row[0] or 0),
        "total_gold_count": int(row[1] or 0),
        "total_silver_count": int(row[2] or 0),
        "total_weight_grams": float(row[3] or 0),
        "total_amount": float(row[4] or 0),
    }


def unique_values(s: Session, column, q: str | None = None, default_limit: int = 10) -> list[str]:
    stmt = (
        select(column)
        .where(Record.deleted_at.is_(None), column.is_not(None), func.trim(column) != "")
        .group_by(column)
        .order_by(column.asc())
    )
    q = (q or "").strip()
    if q:
        stmt = stmt.where(column.ilike(f"%{escape_like(q)}%", escape="/"))
    else:
        stmt = stmt.limit(default_limit)
    return [v for v in s.execute(stmt).scalars().all()]


def search_by_mobile(s: Session, mobile: str, limit: int = 10) -> list[Record]:
    return (
        s.execute(
            live_records()
            .where(Record.mobile.contains(mobile, autoescape=True))
            .order_by(Record.updated_at.desc(), Record.created_at.desc(), Record.id.desc())
            .limit(limit)
        )
        .scalars()
        .all()
    )


def money(v: Decimal | float | None) -> str | None:
    return str(v) if v is not None else None
