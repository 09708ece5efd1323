from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from projecthub.db.session import get_db
from projecthub.identity import GraphDirectory
from projecthub.models.security import Role, User
from projecthub.models.work import Issue, IssueHistory, Order, Project
from projecthub.routers.common import Pagination, get_or_404, load_permissions, paginate, pagination
from projecthub.schemas.common import Message, Page
from projecthub.schemas.security import UserIn, UserOut, UserUpdate
from projecthub.settings import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user", tags=["users"])


def get_graph_directory(request: Request) -> GraphDirectory | None:
    return getattr(request.app.state, "graph_directory", None)


def _user_query():
    return select(User).options(selectinload(User.role), selectinload(User.permissions))


def _load_user(db: Session, user_id: int) -> User:
    user = db.scalars(_user_query().where(User.id == user_id)).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found")
    return user


@router.get("", response_model=Page[UserOut])
def list_users(
    role: str | None = Query(default=None),
    paging: Pagination = Depends(pagination),
    db: Session = Depends(get_db),
) -> Page[UserOut]:
    stmt = _user_query().order_by(User.id)
    if role:
        stmt = stmt.join(Role, User.role_id == Role.id).where(Role.name == role.strip().upper())
    rows, total = paginate(db, stmt, paging)
    return Page.build([UserOut.model_validate(u) for u in rows], total, paging.page, paging.limit)


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: int, db: Session = Depends(get_db)) -> User:
    return _load_user(db, user_id)


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserIn,
    db: Session = Depends(get_db),
    graph: GraphDirectory | None = Depends(get_graph_directory),
    settings: Settings = Depends(get_settings),
) -> User:
    email = body.email.strip().lower()
    get_or_404(db, Role, body.role_id, "Role")
    permissions = load_permissions(db, body.permission_ids)

    user = User(email=email, display_name=body.display_name, role_id=body.role_id)
    user.permissions = permissions
    db.add(user)
    # a duplicate email fails here, before anyone is invited
    db.flush()

    if graph is not None:
        user.azure_id = graph.invite_user(email, body.display_name, settings.frontend_url)
    db.commit()
    logger.info("User created successfully: id=%s role_id=%s", user.id, user.role_id)
    return _load_user(db, user.id)


@router.put("/{user_id}", response_model=UserOut)
def update_user(user_id: int, body: UserUpdate, db: Session = Depends(get_db)) -> User:
    user = _load_user(db, user_id)
    if "display_name" in body.model_fields_set:
        user.display_name = body.display_name
    if body.role_id is not None and body.role_id != user.role_id:
        user.role = get_or_404(db, Role, body.role_id, "Role")
    if body.permission_ids is not None:
        user.permissions = load_permissions(db, body.permission_ids)
    db.commit()
    logger.info("User updated successfully: id=%s", user_id)
    return _load_user(db, user_id)


def _owned_rows(db: Session, user_id: int) -> dict[str, int]:
    counts = {}
    owners = (("projects", Project), ("issues", Issue), ("issue history entries", IssueHistory), ("orders", Order))
    for label, model in owners:
        n = db.scalar(select(func.count()).select_from(model).where(model.user_id == user_id)) or 0
        if n:
            counts[label] = n
    return counts


@router.delete("/{user_id}", response_model=Message)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    graph: GraphDirectory | None = Depends(get_graph_directory),
) -> Message:
    user = _load_user(db, user_id)
    owned = _owned_rows(db, user_id)
    if owned:
        summary = ", ".join(f"{n} {label}" for label, n in owned.items())
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"User with ID {user_id} still owns {summary}",
        )

    azure_id = user.azure_id
    user.permissions.clear()
    db.delete(user)
    db.commit()
    logger.info("User deleted successfully: id=%s", user_id)

    # only after the local delete is committed
    if graph is not None and azure_id:
        graph.delete_user(azure_id)
    return Message(message="User deleted successfully.")
