from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from projecthub.db.session import get_db
from projecthub.models.security import Permission
from projecthub.routers.common import get_or_404
from projecthub.schemas.common import Message
from projecthub.schemas.security import PermissionIn, PermissionOut, PermissionUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/permission", tags=["permissions"])


@router.post("", response_model=PermissionOut, status_code=status.HTTP_201_CREATED)
def create_permission(body: PermissionIn, db: Session = Depends(get_db)) -> Permission:
    permission = Permission(action=body.action, description=body.description)
    db.add(permission)
    db.commit()
    db.refresh(permission)
    logger.info("Permission created: %s", permission.action)
    return permission


@router.get("", response_model=list[PermissionOut])
def list_permissions(db: Session = Depends(get_db)) -> list[Permission]:
    return list(db.scalars(select(Permission).order_by(Permission.action)).all())


@router.get("/{permission_id}", response_model=PermissionOut)
def get_permission(permission_id: int, db: Session = Depends(get_db)) -> Permission:
    return get_or_404(db, Permission, permission_id, "Permission")


@router.put("/{permission_id}", response_model=PermissionOut)
def update_permission(permission_id: int, body: PermissionUpdate, db: Session = Depends(get_db)) -> Permission:
    permission = get_or_404(db, Permission, permission_id, "Permission")
    if "description" in body.model_fields_set:
        permission.description = body.description
    db.commit()
    db.refresh(permission)
    return permission


@router.delete("/{permission_id}", response_model=Message)
def delete_permission(permission_id: int, db: Session = Depends(get_db)) -> Message:
    permission = get_or_404(db, Permission, permission_id, "Permission")
    db.delete(permission)
    db.commit()
    logger.info("Permission deleted: %s", permission.action)
    return Message(message="Permission deleted successfully")
