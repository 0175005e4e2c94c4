from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from pledgebook.db.base import Base
from pledgebook.services.dashboard import (
    calculate_trend,
    compute_dashboard,
    month_range,
    previous_month,
)
from pledgebook.services.records import create_record, settle_record, soft_delete_record


TODAY = date(2026, 4, 6)


@pytest.fixture(scope="session")
def engine():
    eng = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture()
def session(engine):
    connection = engine.connect()
    trans = connection.begin()
    Session = sessionmaker(bind=connection, autoflush=False, autocommit=False, future=True)
    s = Session()
    try:
        yield s
    finally:
        s.close()
        trans.rollback()
        connection.close()


def _mk(session, d: date, item_type: str, amount, gold=None, silver=None, category="active"):
    return create_record(
        session,
        {
            "sl_no": f"D-{uuid4().hex[:8]}",
            "date": d,
            "name": "Customer",
            "father_name": "Father",
            "street": "Street",
            "place": "Place",
            "mobile": "9123456789",
            "item_type": item_type,
            "item_category": category,
            "gold_weight_grams": gold,
            "silver_weight_grams": silver,
            "amount": amount,
        },
        as_of=TODAY,
    )


def _seed(session):
    _mk(session, date(2026, 4, 2), "Gold", 1000, gold=10)
    _mk(session, date(2026, 4, 5), "Silver", 2000, silver=50)
    _mk(session, date(2026, 3, 15), "Both", 30000, gold=5, silver=20, category="archived")
    _mk(session, date(2025, 6, 1), "Gold", 500, gold=2, category="big")

    returned = _mk(session, date(2026, 4, 1), "Gold", 700, gold=3)
    settle_record(session, returned.id, 721)

    deleted = _mk(session, date(2026, 4, 3), "Gold", 9999, gold=99)
    soft_delete_record(session, deleted)


def test_month_helpers():
    assert month_range(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
    assert previous_month(2026, 1) == (2025, 12)
    assert previous_month(2026, 4) == (2026, 3)


def test_trend_percentages():
    assert calculate_trend(0, 0) == 0.0
    assert calculate_trend(5, 0) == 100.0
    assert calculate_trend(3, 2) == pytest.approx(50.0)
    assert calculate_trend(1, 4) == pytest.approx(-75.0)


def test_dashboard_overview_counts_only_held_records(session):
    _seed(session)
    out = compute_dashboard(session, TODAY)
    ov = out["stats"]["overview"]

    assert ov["total_records"] == 4
    assert ov["total_gold_count"] == 2
    assert ov["total_silver_count"] == 1
    assert ov["total_both_count"] == 1
    assert ov["total_gold_weight"] == pytest.approx(17)
    assert ov["total_silver_weight"] == pytest.approx(70)
    assert ov["total_gold_amount"] == pytest.approx(1500)
    assert ov["total_silver_amount"] == pytest.approx(2000)
    assert ov["total_weight_grams"] == pytest.approx(87)
    assert ov["total_amount"] == pytest.approx(33500)
    assert ov["average_weight"] == pytest.approx(21.75)
    assert ov["average_amount"] == pytest.approx(8375)


def test_dashboard_returned_and_categories(session):
    _seed(session)
    stats = compute_dashboard(session, TODAY)["stats"]

    assert stats["returned"]["total_records"] == 1
    assert stats["returned"]["total_gold_count"] == 1
    assert stats["returned"]["total_amount"] == pytest.approx(721)
    assert stats["returned"]["total_weight_grams"] == pytest.approx(3)
    assert stats["categories"] == {"active": 2, "archived": 1, "big": 1}


def test_dashboard_current_month_and_trends(session):
    _seed(session)
    stats = compute_dashboard(session, TODAY)["stats"]

    cm = stats["current_month"]
    assert cm["records"] == 2
    assert cm["weight"] == pytest.approx(60)
    assert cm["amount"] == pytest.approx(3000)
    assert (cm["gold_count"], cm["silver_count"], cm["both_count"]) == (1, 1, 0)

    monthly = stats["trends"]["monthly"]
    assert monthly["records"] == pytest.approx(100.0)
    assert monthly["weight"] == pytest.approx(140.0)
    assert monthly["amount"] == pytest.approx(-90.0)

    yearly = stats["trends"]["yearly"]
    assert yearly["records"] == pytest.approx(200.0)
    assert yearly["weight"] == pytest.approx(4150.0)
    assert yearly["amount"] == pytest.approx(6500.0)


def test_dashboard_recent_records_newest_first(session):
    _seed(session)
    recent = compute_dashboard(session, TODAY)["recent_records"]

    assert [r["amount"] for r in recent] == [500.0, 30000.0, 2000.0]
    assert recent[1]["total_weight"] == pytest.approx(25)


def test_dashboard_empty(session):
    out = compute_dashboard(session, TODAY)
    assert out["stats"]["overview"]["total_records"] == 0
    assert out["stats"]["overview"]["average_amount"] == 0.0
    assert out["stats"]["trends"]["monthly"]["records"] == 0.0
    assert out["recent_records"] == []
