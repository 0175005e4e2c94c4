from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pledgebook.api.deps import db, current_user
from pledgebook.schemas.dashboard import DashboardOut
from pledgebook.services.dashboard import compute_dashboard
from pledgebook.utils.timezone import today_local

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardOut)
def dashboard(s: Session = Depends(db), u=Depends(current_user)):
    return compute_dashboard(s, today_local())
