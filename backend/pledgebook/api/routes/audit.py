from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import select

from pledgebook.api.deps import db, require_admin
from pledgebook.models.audit_log import AuditLog
from pledgebook.schemas.audit import AuditOut

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=list[AuditOut])
def list_audit(
    s: Session = Depends(db),
    admin=Depends(require_admin),
    actor: str | None = Query(default=None),
    entity_type: str | None = Query(default=None),
    entity_id: int | None = Query(default=None),
    action: str | None = Query(default=None),
    since: date | None = Query(default=None),
    until: date | None = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
):
    q = select(AuditLog)

    if actor:
        q = q.where(AuditLog.actor == actor.strip().lower())
    if entity_type:
        q = q.where(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        q = q.where(AuditLog.entity_id == entity_id)
    if action:
        q = q.where(AuditLog.action == action)
    if since is not None:
        q = q.where(AuditLog.created_at >= datetime.combine(since, time.min))
    if until is not None:
        q = q.where(AuditLog.created_at < datetime.combine(until + timedelta(days=1), time.min))

    q = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit)
    return s.execute(q).scalars().all()
