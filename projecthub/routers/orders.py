from __future__ import annotations

from datetime import date
from decimal import Decimal
import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from projecthub.db.session import get_db
from projecthub.models.work import Order
from projecthub.routers.common import (
    ListFilters,
    Pagination,
    check_date_range,
    get_attachment_store,
    get_or_404,
    incoming_files,
    list_filters,
    paginate,
    pagination,
)
from projecthub.schemas.common import Message, Page
from projecthub.schemas.work import (
    ArchiveOut,
    AttachmentOut,
    OrderCreated,
    OrderOut,
    OrderStatsOut,
    SkippedFileOut,
    UploadOut,
)
from projecthub.security.context import Actor
from projecthub.security.dependencies import get_current_actor
from projecthub.storage.attachments import AttachmentStore, OwnerKind

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/order", tags=["orders"])


def _order_query(archived: bool, filters: ListFilters):
    stmt = select(Order).where(Order.archived.is_(archived)).options(selectinload(Order.files))
    return filters.apply(stmt, Order, Order.name)


def _created(order: Order, skipped) -> OrderCreated:
    return OrderCreated(
        order=OrderOut.model_validate(order),
        skipped_files=[SkippedFileOut.model_validate(s) for s in skipped],
    )


@router.post("", response_model=OrderCreated, status_code=status.HTTP_201_CREATED)
def create_order(
    name: str = Form(min_length=1),
    order_status: str = Form(alias="status", min_length=1),
    description: str | None = Form(default=None),
    price: Decimal | None = Form(default=None, ge=0),
    location: str | None = Form(default=None),
    company_name: str | None = Form(default=None),
    start_date: date | None = Form(default=None),
    end_date: date | None = Form(default=None),
    files: list[UploadFile] | None = File(default=None),
    actor: Actor = Depends(get_current_actor),
    store: AttachmentStore = Depends(get_attachment_store),
    db: Session = Depends(get_db),
) -> OrderCreated:
    check_date_range(start_date, end_date)

    with store.batch(db) as batch:
        order = Order(
            name=name.strip(),
            status=order_status.strip().upper(),
            description=description,
            price=price,
            location=location,
            company_name=company_name,
            start_date=start_date,
            end_date=end_date,
            user_id=actor.user_id,
        )
        db.add(order)
        db.flush()
        result = batch.accept(OwnerKind.ORDER, order.id, incoming_files(files))

    db.refresh(order)
    logger.info("Order created successfully: %s", order.id)
    return _created(order, result.skipped)


@router.get("", response_model=Page[OrderOut])
def list_orders(
    filters: ListFilters = Depends(list_filters),
    paging: Pagination = Depends(pagination),
    db: Session = Depends(get_db),
) -> Page[OrderOut]:
    rows, total = paginate(db, _order_query(False, filters), paging)
    return Page.build([OrderOut.model_validate(o) for o in rows], total, paging.page, paging.limit)


@router.get("/list", response_model=Page[OrderOut])
def list_order_names(
    paging: Pagination = Depends(pagination),
    db: Session = Depends(get_db),
) -> Page[OrderOut]:
    stmt = select(Order).where(Order.archived.is_(False)).order_by(Order.name)
    rows, total = paginate(db, stmt, paging)
    return Page.build([OrderOut.model_validate(o) for o in rows], total, paging.page, paging.limit)


@router.get("/archived/list", response_model=Page[OrderOut])
def list_archived_orders(
    filters: ListFilters = Depends(list_filters),
    paging: Pagination = Depends(pagination),
    db: Session = Depends(get_db),
) -> Page[OrderOut]:
    rows, total = paginate(db, _order_query(True, filters), paging)
    return Page.build([OrderOut.model_validate(o) for o in rows], total, paging.page, paging.limit)


@router.get("/dashboard/stats", response_model=OrderStatsOut)
def order_stats(db: Session = Depends(get_db)) -> OrderStatsOut:
    def orders_with(status_value: str) -> int:
        return db.scalar(select(func.count()).select_from(Order).where(Order.status == status_value)) or 0

    return OrderStatsOut(
        total_orders=db.scalar(select(func.count()).select_from(Order)) or 0,
        in_progress_orders=orders_with("IN PROGRESS"),
        pending_orders=orders_with("PENDING"),
        completed_orders=orders_with("COMPLETED"),
    )


@router.get("/dashboard/recent", response_model=Page[OrderOut])
def recent_orders(
    filters: ListFilters = Depends(list_filters),
    paging: Pagination = Depends(pagination),
    db: Session = Depends(get_db),
) -> Page[OrderOut]:
    rows, total = paginate(db, _order_query(False, filters), paging)
    return Page.build([OrderOut.model_validate(o) for o in rows], total, paging.page, paging.limit)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, db: Session = Depends(get_db)) -> Order:
    return get_or_404(db, Order, order_id, "Order")


@router.put("/{order_id}", response_model=OrderCreated)
def update_order(
    order_id: int,
    name: str | None = Form(default=None, min_length=1),
    order_status: str | None = Form(default=None, alias="status", min_length=1),
    description: str | None = Form(default=None),
    price: Decimal | None = Form(default=None, ge=0),
    location: str | None = Form(default=None),
    company_name: str | None = Form(default=None),
    start_date: date | None = Form(default=None),
    end_date: date | None = Form(default=None),
    files: list[UploadFile] | None = File(default=None),
    store: AttachmentStore = Depends(get_attachment_store),
    db: Session = Depends(get_db),
) -> OrderCreated:
    order = get_or_404(db, Order, order_id, "Order")
    check_date_range(start_date or order.start_date, end_date or order.end_date)

    changes = {
        "name": name.strip() if name is not None else None,
        "status": order_status.strip().upper() if order_status is not None else None,
        "description": description,
        "price": price,
        "location": location,
        "company_name": company_name,
        "start_date": start_date,
        "end_date": end_date,
    }
    with store.batch(db) as batch:
        for field, value in changes.items():
            if value is not None:
                setattr(order, field, value)
        db.flush()
        result = batch.accept(OwnerKind.ORDER, order.id, incoming_files(files))

    db.refresh(order)
    logger.info("Order updated successfully: %s", order.id)
    return _created(order, result.skipped)


@router.delete("/{order_id}", response_model=Message)
def delete_order(
    order_id: int,
    store: AttachmentStore = Depends(get_attachment_store),
    db: Session = Depends(get_db),
) -> Message:
    order = get_or_404(db, Order, order_id, "Order")
    store.delete_owner_attachments(db, OwnerKind.ORDER, order_id)
    db.delete(order)
    db.commit()
    logger.info("Order deleted successfully: %s", order_id)
    return Message(message="Order deleted successfully")


@router.patch("/{order_id}/toggle-archive", response_model=ArchiveOut)
def toggle_archive_order(order_id: int, db: Session = Depends(get_db)) -> ArchiveOut:
    order = get_or_404(db, Order, order_id, "Order")
    order.archived = not order.archived
    db.commit()
    logger.info("Order %s archived=%s", order_id, order.archived)
    return ArchiveOut(id=order.id, archived=order.archived)


@router.post("/{order_id}/files", response_model=UploadOut)
def upload_order_files(
    order_id: int,
    files: list[UploadFile] = File(...),
    store: AttachmentStore = Depends(get_attachment_store),
    db: Session = Depends(get_db),
) -> UploadOut:
    result = store.accept_uploads(db, OwnerKind.ORDER, order_id, incoming_files(files))
    return UploadOut(
        owner_id=order_id,
        uploaded_files=[AttachmentOut.model_validate(a) for a in result.accepted],
        skipped_files=[SkippedFileOut.model_validate(s) for s in result.skipped],
    )
