from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from sqlalchemy import select
from sqlalchemy.orm import Session
from pledgebook.db.session import SessionLocal
from pledgebook.core.security import decode_token
from pledgebook.models.user import User

bearer = HTTPBearer()

def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()

def current_user(creds: HTTPAuthorizationCredentials = Depends(bearer), s: Session = Depends(db)):
    try:
        claims = decode_token(creds.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="invalid_token")

    uid = claims.get("uid")
    if not uid:
        raise HTTPException(status_code=401, detail="invalid_token")

    # tokens outlive deactivation, so the account is re-checked on every request
    u = s.execute(select(User).where(User.id == uid, User.is_active.is_(True))).scalar_one_or_none()
    if u is None:
        raise HTTPException(status_code=401, detail="user_inactive")

    return {"sub": u.email, "uid": u.id, "role": u.role.name, "name": u.name}

def require_admin(u=Depends(current_user)):
    if u.get("role") != "admin":
        raise HTTPException(status_code=403, detail="admin_only")
    return u
