import re
from datetime import date
from io import BytesIO

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from pledgebook.api.deps import db, current_user, require_admin
from pledgebook.models.record import Record
from pledgebook.schemas.record import (
    ItemType,
    RecordCreate,
    RecordListOut,
    RecordOut,
    RecordStatsOut,
    RecordStatus,
    RecordUpdate,
    ReturnIn,
    SettlementQuoteOut,
    SortBy,
    check_weights,
)
from pledgebook.services.audit import log_event
from pledgebook.services.interest import SettlementError
from pledgebook.services.records import (
    RecordConflict,
    RecordFilters,
    create_record,
    filtered_records,
    get_record,
    global_stats,
    list_records,
    money,
    quote_record,
    record_out,
    search_by_mobile,
    settle_record,
    soft_delete_record,
    unique_values,
    update_record,
)
from pledgebook.services.reports import build_records_report
from pledgebook.utils.timezone import today_local

router = APIRouter(prefix="/records", tags=["records"])

REQUIRED_FIELDS = (
    "sl_no",
    "date",
    "name",
    "father_name",
    "street",
    "place",
    "mobile",
    "item_type",
    "item_category",
    "amount",
)


def _filters(
    search: str | None = Query(None),
    item_type: ItemType | None = Query(None),
    status: RecordStatus | None = Query(None),
    street: str | None = Query(None),
    place: str | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
) -> RecordFilters:
    return RecordFilters(
        search=search,
        item_type=item_type,
        status=status,
        street=street,
        place=place,
        date_from=date_from,
        date_to=date_to,
    )


def _require_record(s: Session, record_id: int) -> Record:
    r = get_record(s, record_id)
    if r is None:
        raise HTTPException(status_code=404, detail="record_not_found")
    return r


def _safe_part(v: str) -> str:
    s = (v or "").strip()
    s = re.sub(r"\s+", "_", s)
    s = re.sub(r"[^A-Za-z0-9._-]+", "_", s)
    s = re.sub(r"_+", "_", s).strip("_")
    return s[:40] or "all"


@router.get("", response_model=RecordListOut)
def list_all(
    f: RecordFilters = Depends(_filters),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: SortBy = Query("date"),
    sort_dir: str = Query("desc", pattern="^(asc|desc)$"),
    s: Session = Depends(db),
    u=Depends(current_user),
):
    return list_records(s, f, page=page, limit=limit, sort_by=sort_by, sort_dir=sort_dir, as_of=today_local())


@router.post("", response_model=RecordOut, status_code=201)
def create(body: RecordCreate, s: Session = Depends(db), u=Depends(require_admin)):
    try:
        r = create_record(s, body.model_dump(), as_of=today_local())
    except SettlementError as e:
        raise HTTPException(status_code=400, detail=e.code)
    except RecordConflict as e:
        raise HTTPException(status_code=409, detail=e.code)

    log_event(
        s,
        actor=u.get("sub"),
        action="record.create",
        entity_type="record",
        entity_id=r.id,
        details={
            "sl_no": r.sl_no,
            "date": str(r.date),
            "amount": money(r.amount),
            "interest": money(r.interest),
            "item_type": r.item_type,
        },
    )
    return record_out(r)


@router.get("/stats", response_model=RecordStatsOut)
def stats(s: Session = Depends(db), u=Depends(current_user)):
    return global_stats(s)


@router.get("/unique-places", response_model=list[str])
def unique_places(q: str | None = Query(None), s: Session = Depends(db), u=Depends(current_user)):
    return unique_values(s, Record.place, q)


@router.get("/unique-streets", response_model=list[str])
def unique_streets(q: str | None = Query(None), s: Session = Depends(db), u=Depends(current_user)):
    return unique_values(s, Record.street, q)


@router.get("/mobile", response_model=list[RecordOut])
def by_mobile(
    mobile: str = Query(..., min_length=3, max_length=10),
    s: Session = Depends(db),
    u=Depends(current_user),
):
    return [record_out(r) for r in search_by_mobile(s, mobile.strip())]


@router.get("/export")
def export(
    f: RecordFilters = Depends(_filters),
    sort_by: SortBy = Query("date"),
    sort_dir: str = Query("desc", pattern="^(asc|desc)$"),
    s: Session = Depends(db),
    u=Depends(current_user),
):
    as_of = today_local()
    rows = filtered_records(s, f, sort_by=sort_by, sort_dir=sort_dir)

    buf = BytesIO()
    build_records_report(rows, as_of, buf, title=(f.status or "all").capitalize())
    buf.seek(0)

    filename = f"records_{_safe_part(f.status or 'all')}_{as_of}.xlsx"
    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{record_id}", response_model=RecordOut)
def get_one(record_id: int, s: Session = Depends(db), u=Depends(current_user)):
    return record_out(_require_record(s, record_id))


@router.patch("/{record_id}", response_model=RecordOut)
def update(record_id: int, body: RecordUpdate, s: Session = Depends(db), u=Depends(require_admin)):
    r = _require_record(s, record_id)
    changes = body.model_dump(exclude_unset=True)

    for k in REQUIRED_FIELDS:
        if k in changes and changes[k] is None:
            raise HTTPException(status_code=400, detail=f"{k}_required")

    try:
        check_weights(
            changes.get("item_type", r.item_type),
            changes.get("gold_weight_grams", r.gold_weight_grams),
            changes.get("silver_weight_grams", r.silver_weight_grams),
        )
    except ValueError:
        raise HTTPException(status_code=400, detail="weight_required")

    try:
        r = update_record(s, r, changes, as_of=today_local())
    except SettlementError as e:
        raise HTTPException(status_code=400, detail=e.code)
    except RecordConflict as e:
        raise HTTPException(status_code=409, detail=e.code)

    log_event(
        s,
        actor=u.get("sub"),
        action="record.update",
        entity_type="record",
        entity_id=r.id,
        details={"sl_no": r.sl_no, "fields": sorted(changes.keys())},
    )
    return record_out(r)


@router.delete("/{record_id}")
def delete(record_id: int, s: Session = Depends(db), u=Depends(require_admin)):
    r = _require_record(s, record_id)
    soft_delete_record(s, r)
    log_event(
        s,
        actor=u.get("sub"),
        action="record.delete",
        entity_type="record",
        entity_id=record_id,
        details={"sl_no": r.sl_no, "amount": money(r.amount)},
    )
    return {"ok": True}


@router.get("/{record_id}/settlement", response_model=SettlementQuoteOut)
def settlement_quote(
    record_id: int,
    as_of: date | None = Query(None),
    s: Session = Depends(db),
    u=Depends(current_user),
):
    r = _require_record(s, record_id)
    return quote_record(r, as_of or today_local())


@router.post("/{record_id}/return", response_model=RecordOut)
def return_item(record_id: int, body: ReturnIn, s: Session = Depends(db), u=Depends(require_admin)):
    r = _require_record(s, record_id)
    suggested = quote_record(r, today_local())["total_amount"]

    try:
        r = settle_record(
            s,
            record_id,
            body.returned_amount,
            returned_date=body.returned_date,
            item_return_image_url=body.item_return_image_url,
        )
    except SettlementError as e:
        raise HTTPException(status_code=400, detail=e.code)
    except RecordConflict as e:
        raise HTTPException(status_code=409, detail=e.code)
    except LookupError:
        raise HTTPException(status_code=404, detail="record_not_found")

    log_event(
        s,
        actor=u.get("sub"),
        action="record.return",
        entity_type="record",
        entity_id=r.id,
        details={
            "sl_no": r.sl_no,
            "returned_amount": money(r.returned_amount),
            "suggested_total": str(suggested),
        },
    )
    return record_out(r)
