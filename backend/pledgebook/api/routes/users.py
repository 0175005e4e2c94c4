from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import select
from pledgebook.api.deps import db, require_admin
from pledgebook.schemas.user import UserCreate, UserUpdate, UserOut, RoleOut
from pledgebook.models.role import Role
from pledgebook.models.user import User
from pledgebook.core.security import hash_password
from pledgebook.services.audit import log_event

router = APIRouter(prefix="/users", tags=["users"])


def _user_out(u: User) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "name": u.name,
        "role": u.role.name,
        "is_active": bool(u.is_active),
        "created_at": u.created_at,
    }


def _require_role(s: Session, name: str) -> Role:
    role = s.execute(select(Role).where(Role.name == name)).scalar_one_or_none()
    if role is None:
        raise HTTPException(status_code=400, detail="role_invalid")
    return role


@router.get("", response_model=list[UserOut])
def list_users(s: Session = Depends(db), u=Depends(require_admin)):
    return [_user_out(x) for x in s.execute(select(User).order_by(User.email.asc())).scalars().all()]


@router.get("/roles", response_model=list[RoleOut])
def list_roles(s: Session = Depends(db), u=Depends(require_admin)):
    return s.execute(select(Role).order_by(Role.name.asc())).scalars().all()


@router.post("", response_model=UserOut, status_code=201)
def create_user(body: UserCreate, s: Session = Depends(db), u=Depends(require_admin)):
    exists = s.execute(select(User).where(User.email == body.email)).scalar_one_or_none()
    if exists:
        raise HTTPException(status_code=409, detail="user_exists")
    role = _require_role(s, body.role)
    user = User(email=body.email, name=body.name, password_hash=hash_password(body.password), role_id=role.id)
    s.add(user)
    s.commit()
    s.refresh(user)

    log_event(
        s,
        actor=u.get("sub"),
        action="user.create",
        entity_type="user",
        entity_id=user.id,
        details={"email": user.email, "role": role.name},
    )
    return _user_out(user)


@router.patch("/{user_id}", response_model=UserOut)
def update_user(user_id: int, body: UserUpdate, s: Session = Depends(db), u=Depends(require_admin)):
    user = s.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="user_not_found")

    changed: list[str] = []
    if body.name is not None:
        user.name = body.name
        changed.append("name")
    if body.role is not None:
        user.role_id = _require_role(s, body.role).id
        changed.append("role")
    if body.password is not None:
        user.password_hash = hash_password(body.password)
        changed.append("password")
    if body.is_active is not None:
        if not body.is_active and user.id == u.get("uid"):
            raise HTTPException(status_code=409, detail="cannot_deactivate_self")
        user.is_active = body.is_active
        changed.append("is_active")
    s.add(user)
    s.commit()
    s.refresh(user)

    log_event(
        s,
        actor=u.get("sub"),
        action="user.update",
        entity_type="user",
        entity_id=user.id,
        details={"email": user.email, "fields": changed},
    )
    return _user_out(user)


@router.delete("/{user_id}")
def delete_user(user_id: int, s: Session = Depends(db), me=Depends(require_admin)):
    user = s.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="user_not_found")
    if user.id == me.get("uid"):
        raise HTTPException(status_code=409, detail="cannot_delete_self")
    details = {"email": user.email, "role": user.role.name}
    s.delete(user)
    s.commit()
    log_event(
        s,
        actor=me.get("sub"),
        action="user.delete",
        entity_type="user",
        entity_id=user_id,
        details=details,
    )
    return {"ok": True}
