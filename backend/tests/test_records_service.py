from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from pledgebook.db.base import Base
from pledgebook.models.record import Record
from pledgebook.services.interest import InvalidAmount, InvalidDate, MissingReturnedAmount
import pledgebook.services.records as records_service
from pledgebook.services.records import (
    RecordConflict,
    RecordFilters,
    create_record,
    get_record,
    global_stats,
    list_records,
    quote_record,
    search_by_mobile,
    settle_record,
    soft_delete_record,
    unique_values,
    update_record,
)


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


def _data(**kw) -> dict:
    out = {
        "sl_no": f"SL-{uuid4().hex[:8]}",
        "date": TODAY - timedelta(days=10),
        "name": "Ravi Kumar",
        "father_name": "Suresh Kumar",
        "street": "Main Bazaar",
        "place": "Madurai",
        "mobile": "9876543210",
        "item": "Chain",
        "item_type": "Gold",
        "item_category": "active",
        "gold_weight_grams": 12.5,
        "silver_weight_grams": None,
        "amount": 5000,
    }
    out.update(kw)
    return out


def _mk(session, **kw) -> Record:
    return create_record(session, _data(**kw), as_of=TODAY)


def test_create_fixes_rate_from_principal(session):
    small = _mk(session, amount=9999.99)
    big = _mk(session, amount=10000)

    assert Decimal(str(small.interest)) == Decimal("3.0")
    assert Decimal(str(big.interest)) == Decimal("2.5")
    assert small.is_returned is False
    assert small.returned_amount is None
    assert small.returned_date is None


def test_create_defaults_date_to_today(session):
    r = _mk(session, date=None)
    assert r.date == TODAY


def test_create_rejects_future_date_and_bad_amount(session):
    with pytest.raises(InvalidDate):
        _mk(session, date=TODAY + timedelta(days=1))
    with pytest.raises(InvalidAmount):
        _mk(session, amount=-5)


def test_create_rejects_duplicate_sl_no(session):
    _mk(session, sl_no="A-100")
    with pytest.raises(RecordConflict) as e:
        _mk(session, sl_no="A-100")
    assert e.value.code == "sl_no_exists"


def test_update_keeps_rate_fixed_at_issuance(session):
    r = _mk(session, amount=5000)
    r = update_record(session, r, {"amount": 50000, "name": "Ravi K"}, as_of=TODAY)

    assert Decimal(str(r.amount)) == Decimal("50000")
    assert Decimal(str(r.interest)) == Decimal("3.0")
    assert r.name == "Ravi K"


def test_update_rejects_taken_sl_no(session):
    _mk(session, sl_no="B-1")
    r = _mk(session, sl_no="B-2")
    with pytest.raises(RecordConflict):
        update_record(session, r, {"sl_no": "B-1"}, as_of=TODAY)
    # same value is not a conflict with itself
    update_record(session, r, {"sl_no": "B-2"}, as_of=TODAY)


def test_quote_uses_stored_rate_and_holding_period(session):
    r = _mk(session, amount=150000, date=TODAY - timedelta(days=95))
    q = quote_record(r, TODAY)

    assert q["interest_rate_percent"] == 2.5
    assert q["days_old"] == 95
    assert q["months_old"] == 3
    assert q["billable_months"] == 2
    assert q["interest_amount"] == 7500.0
    assert q["total_amount"] == 157500.0


def test_settle_marks_returned_once(session):
    r = _mk(session)
    done = settle_record(session, r.id, Decimal("5150"), returned_date=datetime(2026, 4, 6, 11, 30))

    assert done.is_returned is True
    assert Decimal(str(done.returned_amount)) == Decimal("5150")
    assert done.returned_date == datetime(2026, 4, 6, 11, 30)

    with pytest.raises(RecordConflict) as e:
        settle_record(session, r.id, Decimal("6000"))
    assert e.value.code == "record_already_returned"

    again = get_record(session, r.id)
    assert Decimal(str(again.returned_amount)) == Decimal("5150")


def test_settle_operator_may_override_suggested_total(session):
    r = _mk(session, amount=5000)
    suggested = quote_record(r, TODAY)["total_amount"]
    done = settle_record(session, r.id, 5000)

    assert suggested == 5150.0
    assert Decimal(str(done.returned_amount)) == Decimal("5000")


def test_settle_requires_positive_returned_amount(session):
    r = _mk(session)
    for bad in (None, 0, -1):
        with pytest.raises(MissingReturnedAmount):
            settle_record(session, r.id, bad)

    again = get_record(session, r.id)
    assert again.is_returned is False
    assert again.returned_amount is None


def test_settle_missing_or_deleted_record(session):
    with pytest.raises(LookupError):
        settle_record(session, 999999, 100)

    r = _mk(session)
    soft_delete_record(session, r)
    with pytest.raises(LookupError):
        settle_record(session, r.id, 100)


def test_soft_delete_hides_record_and_keeps_sl_no(session):
    r = _mk(session, sl_no="C-9")
    soft_delete_record(session, r)

    assert get_record(session, r.id) is None
    assert r.deleted_at is not None
    with pytest.raises(RecordConflict):
        _mk(session, sl_no="C-9")


def test_list_filters_and_stats(session):
    tag = f"t{uuid4().hex[:6]}"
    _mk(session, name=f"Gold {tag}", amount=1000, gold_weight_grams=10)
    _mk(session, name=f"Silver {tag}", item_type="Silver", gold_weight_grams=None, silver_weight_grams=50, amount=2000)
    _mk(session, name=f"Both {tag}", item_type="Both", gold_weight_grams=5, silver_weight_grams=20, amount=30000)
    _mk(session, name=f"Big {tag}", item_category="big", amount=40000, gold_weight_grams=100)
    ret = _mk(session, name=f"Returned {tag}", amount=700, gold_weight_grams=2)
    settle_record(session, ret.id, 721)

    out = list_records(session, RecordFilters(search=tag, status="active"), as_of=TODAY)
    assert out["total"] == 3
    assert {x["name"] for x in out["data"]} == {f"Gold {tag}", f"Silver {tag}", f"Both {tag}"}
    assert out["stats"]["total_amount"] == 33000.0
    assert out["stats"]["total_weight"] == 85.0
    assert out["stats"]["gold_count"] == 1
    assert out["stats"]["silver_count"] == 1
    assert out["stats"]["both_count"] == 1
    assert out["stats"]["gold_weight"] == 10.0
    assert out["stats"]["silver_amount"] == 2000.0

    big = list_records(session, RecordFilters(search=tag, status="big"), as_of=TODAY)
    assert big["total"] == 1
    assert big["stats"]["big_records"] == 1

    returned = list_records(session, RecordFilters(search=tag, status="returned"), as_of=TODAY)
    assert [x["name"] for x in returned["data"]] == [f"Returned {tag}"]

    silver = list_records(session, RecordFilters(search=tag, item_type="Silver"), as_of=TODAY)
    assert silver["total"] == 1


def test_list_enriches_rows_with_settlement(session):
    tag = f"t{uuid4().hex[:6]}"
    _mk(session, name=f"Old {tag}", amount=150000, date=TODAY - timedelta(days=95))

    out = list_records(session, RecordFilters(search=tag), as_of=TODAY)
    row = out["data"][0]
    assert row["days_old"] == 95
    assert row["months_old"] == 3
    assert row["interest_months"] == 2
    assert row["calculated_interest_amount"] == 7500.0
    assert row["calculated_total_amount"] == 157500.0
    assert row["total_weight_grams"] == 12.5


def test_list_pagination_and_sort(session):
    tag = f"t{uuid4().hex[:6]}"
    for i in range(5):
        _mk(session, name=f"P{i} {tag}", amount=1000 + i, date=TODAY - timedelta(days=i))

    page1 = list_records(session, RecordFilters(search=tag), page=1, limit=2, sort_by="amount", sort_dir="asc", as_of=TODAY)
    page3 = list_records(session, RecordFilters(search=tag), page=3, limit=2, sort_by="amount", sort_dir="asc", as_of=TODAY)

    assert page1["total"] == 5
    assert [x["amount"] for x in page1["data"]] == [1000.0, 1001.0]
    assert [x["amount"] for x in page3["data"]] == [1004.0]

    by_date = list_records(session, RecordFilters(search=tag), limit=500, as_of=TODAY)
    assert by_date["limit"] == 100
    assert by_date["data"][0]["date"] == TODAY


def test_list_date_range_street_and_place(session):
    tag = f"t{uuid4().hex[:6]}"
    _mk(session, name=f"In {tag}", date=date(2026, 2, 10), street="North Street", place="Trichy")
    _mk(session, name=f"Out {tag}", date=date(2026, 1, 5), street="South Street", place="Salem")

    out = list_records(
        session,
        RecordFilters(search=tag, date_from=date(2026, 2, 1), date_to=date(2026, 2, 28)),
        as_of=TODAY,
    )
    assert [x["name"] for x in out["data"]] == [f"In {tag}"]

    out = list_records(session, RecordFilters(search=tag, street="south street"), as_of=TODAY)
    assert [x["name"] for x in out["data"]] == [f"Out {tag}"]

    out = list_records(session, RecordFilters(search=tag, place="TRICHY"), as_of=TODAY)
    assert [x["name"] for x in out["data"]] == [f"In {tag}"]


def test_unique_values_and_mobile_search(session):
    _mk(session, place="Karaikudi", mobile="9000000001")
    _mk(session, place="Karaikal", mobile="9000000002")
    _mk(session, place="Karaikudi", mobile="9000000003")

    places = unique_values(session, Record.place, "karai")
    assert places == ["Karaikal", "Karaikudi"]

    hits = search_by_mobile(session, "900000000")
    assert len(hits) == 3
    assert {r.mobile for r in search_by_mobile(session, "0002")} == {"9000000002"}


def test_global_stats_ignore_deleted(session):
    before = global_stats(session)
    r = _mk(session, amount=1200, gold_weight_grams=3)
    _mk(session, amount=800, item_type="Silver", gold_weight_grams=None, silver_weight_grams=7)
    soft_delete_record(session, r)

    after = global_stats(session)
    assert after["total_records"] == before["total_records"] + 1
    assert after["total_silver_count"] == before["total_silver_count"] + 1
    assert after["total_gold_count"] == before["total_gold_count"]
    assert after["total_amount"] == pytest.approx(before["total_amount"] + 800)
    assert after["total_weight_grams"] == pytest.approx(before["total_weight_grams"] + 7)


@pytest.fixture()
def plain_session():
    # no outer transaction: conflict handling rolls the session back
    eng = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(eng)
    Session = sessionmaker(bind=eng, autoflush=False, autocommit=False, future=True)
    s = Session()
    try:
        yield s
    finally:
        s.close()
        eng.dispose()


def test_create_rounds_amount_before_choosing_rate(session):
    r = _mk(session, amount=9999.995)
    assert Decimal(str(r.amount)) == Decimal("10000.00")
    assert Decimal(str(r.interest)) == Decimal("2.5")
    assert quote_record(r, TODAY)["total_amount"] == 10250.0

    below = _mk(session, amount=9999.994)
    assert Decimal(str(below.amount)) == Decimal("9999.99")
    assert Decimal(str(below.interest)) == Decimal("3.0")


def test_update_rounds_amount_to_paise(session):
    r = _mk(session, amount=5000)
    r = update_record(session, r, {"amount": 1234.565}, as_of=TODAY)
    assert Decimal(str(r.amount)) == Decimal("1234.57")


def test_create_serial_number_race_is_a_conflict(plain_session, monkeypatch):
    s = plain_session
    s.add(Record(sl_no="RACE-1", date=TODAY, amount=100, interest=3))
    s.commit()

    # the competing request saw the serial number as free
    monkeypatch.setattr(records_service, "sl_no_taken", lambda *a, **k: False)
    with pytest.raises(RecordConflict) as e:
        _mk(s, sl_no="RACE-1")
    assert e.value.code == "sl_no_exists"

    other = _mk(s, sl_no="RACE-2")
    assert other.id is not None


def test_rename_serial_number_race_is_a_conflict(plain_session, monkeypatch):
    s = plain_session
    _mk(s, sl_no="RN-1")
    r = _mk(s, sl_no="RN-2")

    monkeypatch.setattr(records_service, "sl_no_taken", lambda *a, **k: False)
    with pytest.raises(RecordConflict):
        update_record(s, r, {"sl_no": "RN-1"}, as_of=TODAY)

    assert get_record(s, r.id).sl_no == "RN-2"


def test_search_treats_wildcards_literally(session):
    tag = f"t{uuid4().hex[:6]}"
    _mk(session, name=f"Ravi_K {tag}")
    _mk(session, name=f"RaviXK {tag}")
    _mk(session, name=f"Discount 50% {tag}", place="Pattern_Place")
    _mk(session, name=f"Discount 500 {tag}", place="PatternXPlace")

    out = list_records(session, RecordFilters(search="i_K"), as_of=TODAY)
    assert [x["name"] for x in out["data"]] == [f"Ravi_K {tag}"]

    out = list_records(session, RecordFilters(search="50%"), as_of=TODAY)
    assert [x["name"] for x in out["data"]] == [f"Discount 50% {tag}"]

    out = list_records(session, RecordFilters(place="pattern_place"), as_of=TODAY)
    assert [x["place"] for x in out["data"]] == ["Pattern_Place"]

    assert unique_values(session, Record.place, "n_p") == ["Pattern_Place"]


def test_settle_rejects_return_before_pledge_date(session):
    r = _mk(session, date=TODAY - timedelta(days=10))
    with pytest.raises(InvalidDate):
        settle_record(session, r.id, 5150, returned_date=datetime(2026, 3, 1, 10, 0))

    again = get_record(session, r.id)
    assert again.is_returned is False
    assert again.returned_date is None

    same_day = settle_record(session, r.id, 5150, returned_date=datetime.combine(r.date, datetime.min.time()))
    assert same_day.is_returned is True
