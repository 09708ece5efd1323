from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from projecthub.db.session import get_db
from projecthub.models.security import Role, User
from projecthub.routers.common import load_permissions
from projecthub.schemas.common import Message
from projecthub.schemas.security import RoleIn, RoleOut, RoleUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/role", tags=["roles"])


def _load_role(db: Session, role_id: int) -> Role:
    role = db.scalars(select(Role).where(Role.id == role_id).options(selectinload(Role.permissions))).first()
    if role is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found!")
    return role


@router.post("", response_model=RoleOut, status_code=status.HTTP_201_CREATED)
def create_role(body: RoleIn, db: Session = Depends(get_db)) -> Role:
    role = Role(name=body.name.value, description=body.description)
    role.permissions = load_permissions(db, body.permission_ids)
    db.add(role)
    db.commit()
    logger.info("Role created: %s with %s permissions", role.name, len(role.permissions))
    return _load_role(db, role.id)


@router.get("", response_model=list[RoleOut])
def list_roles(db: Session = Depends(get_db)) -> list[Role]:
    return list(db.scalars(select(Role).options(selectinload(Role.permissions)).order_by(Role.id)).all())


@router.get("/{role_id}", response_model=RoleOut)
def get_role(role_id: int, db: Session = Depends(get_db)) -> Role:
    return _load_role(db, role_id)


@router.put("/{role_id}", response_model=RoleOut)
def update_role(role_id: int, body: RoleUpdate, db: Session = Depends(get_db)) -> Role:
    role = _load_role(db, role_id)
    if "description" in body.model_fields_set:
        role.description = body.description
    if body.permission_ids is not None:
        role.permissions = load_permissions(db, body.permission_ids)
    db.commit()
    logger.info("Role updated: %s", role.name)
    return _load_role(db, role_id)


@router.delete("/{role_id}", response_model=Message)
def delete_role(role_id: int, db: Session = Depends(get_db)) -> Message:
    role = _load_role(db, role_id)
    in_use = db.scalar(select(func.count()).select_from(User).where(User.role_id == role_id)) or 0
    if in_use:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Role {role.name} is assigned to {in_use} user(s)",
        )
    db.delete(role)
    db.commit()
    logger.info("Role deleted: %s", role.name)
    return Message(message="Role deleted successfully")
