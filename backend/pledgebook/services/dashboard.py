from __future__ import annotations

import calendar
from datetime import date

from sqlalchemy import and_, case, func, select
from sqlalchemy.orm import Session

from pledgebook.models.record import Record
from pledgebook.services.records import record_out, total_weight_expr


def month_range(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def year_range(year: int) -> tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)


def previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def calculate_trend(current: float, previous: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100.0


def _count(*conds):
    return func.count(case((and_(*conds), 1)))


def _sum(value, *conds):
    return func.coalesce(func.sum(case((and_(*conds), value))), 0)


def _window(start: date, end: date):
    return and_(Record.date >= start, Record.date <= end)


def compute_dashboard(s: Session, today: date, recent_limit: int = 3) -> dict:
    held = Record.is_returned.is_(False)
    returned = Record.is_returned.is_(True)
    gold = Record.gold_weight_grams
    silver = Record.silver_weight_grams
    weight = total_weight_expr()

    cur_m = month_range(today.year, today.month)
    prev_m = month_range(*previous_month(today.year, today.month))
    cur_y = year_range(today.year)
    prev_y = year_range(today.year - 1)

    cols = {
        "total_records": _count(held),
        "total_gold_count": _count(held, Record.item_type == "Gold"),
        "total_silver_count": _count(held, Record.item_type == "Silver"),
        "total_both_count": _count(held, Record.item_type == "Both"),
        "total_gold_weight": _sum(gold, held),
        "total_silver_weight": _sum(silver, held),
        "total_gold_amount": _sum(Record.amount, held, Record.item_type == "Gold"),
        "total_silver_amount": _sum(Record.amount, held, Record.item_type == "Silver"),
        "total_weight_grams": _sum(weight, held),
        "total_amount": _sum(Record.amount, held),
        "returned_records": _count(returned),
        "returned_gold_count": _count(returned, Record.item_type == "Gold"),
        "returned_silver_count": _count(returned, Record.item_type == "Silver"),
        "returned_both_count": _count(returned, Record.item_type == "Both"),
        "returned_amount": _sum(Record.returned_amount, returned),
        "returned_weight_grams": _sum(weight, returned),
        "active_records": _count(held, Record.item_category == "active"),
        "archived_records": _count(held, Record.item_category == "archived"),
        "big_records": _count(held, Record.item_category == "big"),
        "cur_month_records": _count(held, _window(*cur_m)),
        "cur_month_weight": _sum(weight, held, _window(*cur_m)),
        "cur_month_amount": _sum(Record.amount, held, _window(*cur_m)),
        "cur_month_gold": _count(held, _window(*cur_m), Record.item_type == "Gold"),
        "cur_month_silver": _count(held, _window(*cur_m), Record.item_type == "Silver"),
        "cur_month_both": _count(held, _window(*cur_m), Record.item_type == "Both"),
        "prev_month_records": _count(held, _window(*prev_m)),
        "prev_month_weight": _sum(weight, held, _window(*prev_m)),
        "prev_month_amount": _sum(Record.amount, held, _window(*prev_m)),
        "cur_year_records": _count(held, _window(*cur_y)),
        "cur_year_weight": _sum(weight, held, _window(*cur_y)),
        "cur_year_amount": _sum(Record.amount, held, _window(*cur_y)),
        "prev_year_records": _count(held, _window(*prev_y)),
        "prev_year_weight": _sum(weight, held, _window(*prev_y)),
        "prev_year_amount": _sum(Record.amount, held, _window(*prev_y)),
    }

    row = s.execute(
        select(*[c.label(k) for k, c in cols.items()]).where(Record.deleted_at.is_(None))
    ).mappings().one()
    st = {k: float(v or 0) for k, v in row.items()}

    def n(k: str) -> int:
        return int(st[k])

    total_records = n("total_records")
    overview = {
        "total_records": total_records,
        "total_gold_count": n("total_gold_count"),
        "total_silver_count": n("total_silver_count"),
        "total_both_count": n("total_both_count"),
        "total_gold_weight": st["total_gold_weight"],
        "total_silver_weight": st["total_silver_weight"],
        "total_gold_amount": st["total_gold_amount"],
        "total_silver_amount": st["total_silver_amount"],
        "total_weight_grams": st["total_weight_grams"],
        "total_amount": st["total_amount"],
        "average_weight": st["total_weight_grams"] / total_records if total_records else 0.0,
        "average_amount": st["total_amount"] / total_records if total_records else 0.0,
    }

    recent = (
        s.execute(
            select(Record)
            .where(Record.deleted_at.is_(None), held)
            .order_by(Record.created_at.desc(), Record.id.desc())
            .limit(recent_limit)
        )
        .scalars()
        .all()
    )
    recent_out = []
    for r in recent:
        out = record_out(r)
        out["total_weight"] = out["total_weight_grams"]
        recent_out.append(out)

    return {
        "stats": {
            "overview": overview,
            "returned": {
                "total_records": n("returned_records"),
                "total_gold_count": n("returned_gold_count"),
                "total_silver_count": n("returned_silver_count"),
                "total_both_count": n("returned_both_count"),
                "total_amount": st["returned_amount"],
                "total_weight_grams": st["returned_weight_grams"],
            },
            "categories": {
                "active": n("active_records"),
                "archived": n("archived_records"),
                "big": n("big_records"),
            },
            "current_month": {
                "records": n("cur_month_records"),
                "weight": st["cur_month_weight"],
                "amount": st["cur_month_amount"],
                "gold_count": n("cur_month_gold"),
                "silver_count": n("cur_month_silver"),
                "both_count": n("cur_month_both"),
            },
            "trends": {
                "monthly": {
                    "records": calculate_trend(st["cur_month_records"], st["prev_month_records"]),
                    "weight": calculate_trend(st["cur_month_weight"], st["prev_month_weight"]),
                    "amount": calculate_trend(st["cur_month_amount"], st["prev_month_amount"]),
                },
                "yearly": {
                    "records": calculate_trend(st["cur_year_records"], st["prev_year_records"]),
                    "weight": calculate_trend(st["cur_year_weight"], st["prev_year_weight"]),
                    "amount": calculate_trend(st["cur_year_amount"], st["prev_year_amount"]),
                },
            },
        },
        "recent_records": recent_out,
    }
