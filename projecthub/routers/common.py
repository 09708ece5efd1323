from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Literal, TypeVar

from fastapi import HTTPException, Query, Request, UploadFile, status
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from projecthub.models.security import Permission
from projecthub.storage.attachments import AttachmentStore, IncomingFile

ModelT = TypeVar("ModelT")


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def pagination(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
) -> Pagination:
    return Pagination(page=page, limit=limit)


@dataclass(frozen=True)
class ListFilters:
    """Query-string filters shared by the project and order lists."""

    status: str | None = None
    search: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    sort_order: str = "desc"

    def apply(self, stmt: Select, model: Any, search_column: Any) -> Select:
        if self.status:
            stmt = stmt.where(model.status == self.status.strip().upper())
        if self.search:
            stmt = stmt.where(search_column.ilike(f"%{self.search}%"))
        if self.start_date:
            stmt = stmt.where(model.start_date >= self.start_date)
        if self.end_date:
            stmt = stmt.where(model.end_date <= self.end_date)
        if self.sort_order == "asc":
            return stmt.order_by(model.created_at.asc(), model.id.asc())
        return stmt.order_by(model.created_at.desc(), model.id.desc())


def list_filters(
    status_filter: str | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
) -> ListFilters:
    return ListFilters(
        status=status_filter,
        search=search,
        start_date=start_date,
        end_date=end_date,
        sort_order=sort_order,
    )


def paginate(db: Session, stmt: Select, paging: Pagination) -> tuple[list[Any], int]:
    """Run `stmt` for one page; returns (rows, total rows matching `stmt`)."""
    total = db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
    rows = list(db.scalars(stmt.offset(paging.offset).limit(paging.limit)).unique().all())
    return rows, total


def get_or_404(db: Session, model: type[ModelT], id: int, label: str) -> ModelT:
    obj = db.get(model, id)
    if obj is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found!")
    return obj


def get_attachment_store(request: Request) -> AttachmentStore:
    store = getattr(request.app.state, "attachment_store", None)
    if store is None:
        raise RuntimeError("Attachment store not configured. Did app startup run?")
    return store


def incoming_files(files: list[UploadFile] | None) -> list[IncomingFile]:
    return [IncomingFile(filename=f.filename or "", stream=f.file) for f in files or []]


def check_date_range(start: date | None, end: date | None) -> None:
    if start and end and start > end:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start_date must be on or before end_date")


def load_permissions(db: Session, ids: list[int]) -> list[Permission]:
    """Permissions by id; every id must exist."""
    if not ids:
        return []
    found = list(db.scalars(select(Permission).where(Permission.id.in_(ids))).all())
    missing = set(ids) - {p.id for p in found}
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Permission not found: {', '.join(str(i) for i in sorted(missing))}",
        )
    return found
