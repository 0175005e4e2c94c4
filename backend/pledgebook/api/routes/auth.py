from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import select
from pledgebook.api.deps import db
from pledgebook.schemas.auth import LoginIn, TokenOut
from pledgebook.models.user import User
from pledgebook.core.security import verify_password, create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/login", response_model=TokenOut)
def login(body: LoginIn, s: Session = Depends(db)):
    u = s.execute(select(User).where(User.email == body.email, User.is_active.is_(True))).scalar_one_or_none()
    if not u or not verify_password(body.password, u.password_hash):
        raise HTTPException(status_code=401, detail="bad_credentials")
    token = create_access_token(sub=u.email, uid=u.id, role=u.role.name, name=u.name)
    return {
        "access_token": token,
        "user": {"id": u.id, "email": u.email, "name": u.name, "role": u.role.name},
    }
