from __future__ import annotations

from datetime import date
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from projecthub.db.session import get_db
from projecthub.models.work import Issue, IssueHistory, Project
from projecthub.routers.common import (
    Pagination,
    check_date_range,
    get_attachment_store,
    get_or_404,
    incoming_files,
    paginate,
    pagination,
)
from projecthub.schemas.common import Message, Page
from projecthub.schemas.work import (
    AttachmentOut,
    HistoryIn,
    HistoryOut,
    IssueCreated,
    IssueOut,
    SkippedFileOut,
    UploadOut,
)
from projecthub.security.context import Actor
from projecthub.security.dependencies import get_current_actor
from projecthub.storage.attachments import AttachmentStore, OwnerKind

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/issue", tags=["issues"])


def _record(db: Session, issue_id: int, user_id: int, action: str, details: str | None = None) -> IssueHistory:
    entry = IssueHistory(issue_id=issue_id, user_id=user_id, action=action, details=details)
    db.add(entry)
    return entry


def _load_issue(db: Session, issue_id: int) -> Issue:
    issue = db.scalars(select(Issue).where(Issue.id == issue_id).options(selectinload(Issue.files))).first()
    if issue is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Issue not found!")
    return issue


@router.post("", response_model=IssueCreated, status_code=status.HTTP_201_CREATED)
def create_issue(
    project_id: int = Form(),
    title: str = Form(min_length=1),
    issue_status: str = Form(alias="status", min_length=1),
    description: str | None = Form(default=None),
    start_date: date | None = Form(default=None),
    end_date: date | None = Form(default=None),
    files: list[UploadFile] | None = File(default=None),
    actor: Actor = Depends(get_current_actor),
    store: AttachmentStore = Depends(get_attachment_store),
    db: Session = Depends(get_db),
) -> IssueCreated:
    check_date_range(start_date, end_date)
    get_or_404(db, Project, project_id, "Project")

    with store.batch(db) as batch:
        issue = Issue(
            project_id=project_id,
            title=title.strip(),
            description=description,
            status=issue_status.strip().upper(),
            start_date=start_date,
            end_date=end_date,
            user_id=actor.user_id,
        )
        db.add(issue)
        db.flush()
        result = batch.accept(OwnerKind.ISSUE, issue.id, incoming_files(files))
        _record(db, issue.id, actor.user_id, "CREATED", f"Issue created with {len(result.accepted)} file(s)")

    db.refresh(issue)
    logger.info("Issue created successfully: %s (project %s)", issue.id, project_id)
    return IssueCreated(
        issue=IssueOut.model_validate(issue),
        skipped_files=[SkippedFileOut.model_validate(s) for s in result.skipped],
    )


@router.get("", response_model=Page[IssueOut])
def list_issues(
    project_id: int | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    paging: Pagination = Depends(pagination),
    db: Session = Depends(get_db),
) -> Page[IssueOut]:
    stmt = select(Issue).options(selectinload(Issue.files)).order_by(Issue.created_at.desc(), Issue.id.desc())
    if project_id is not None:
        stmt = stmt.where(Issue.project_id == project_id)
    if status_filter:
        stmt = stmt.where(Issue.status == status_filter.strip().upper())
    rows, total = paginate(db, stmt, paging)
    return Page.build([IssueOut.model_validate(i) for i in rows], total, paging.page, paging.limit)


@router.get("/{issue_id}", response_model=IssueOut)
def get_issue(issue_id: int, db: Session = Depends(get_db)) -> Issue:
    return _load_issue(db, issue_id)


@router.put("/{issue_id}", response_model=IssueCreated)
def update_issue(
    issue_id: int,
    title: str | None = Form(default=None, min_length=1),
    issue_status: str | None = Form(default=None, alias="status", min_length=1),
    description: str | None = Form(default=None),
    start_date: date | None = Form(default=None),
    end_date: date | None = Form(default=None),
    files: list[UploadFile] | None = File(default=None),
    actor: Actor = Depends(get_current_actor),
    store: AttachmentStore = Depends(get_attachment_store),
    db: Session = Depends(get_db),
) -> IssueCreated:
    issue = _load_issue(db, issue_id)
    check_date_range(start_date or issue.start_date, end_date or issue.end_date)

    changes = {
        "title": title.strip() if title is not None else None,
        "status": issue_status.strip().upper() if issue_status is not None else None,
        "description": description,
        "start_date": start_date,
        "end_date": end_date,
    }
    with store.batch(db) as batch:
        changed = []
        for field, value in changes.items():
            if value is not None and getattr(issue, field) != value:
                changed.append(f"{field}: {getattr(issue, field)} -> {value}")
                setattr(issue, field, value)
        db.flush()
        result = batch.accept(OwnerKind.ISSUE, issue.id, incoming_files(files))
        if result.accepted:
            changed.append(f"files added: {', '.join(a.original_name for a in result.accepted)}")
        if changed:
            _record(db, issue.id, actor.user_id, "UPDATED", "; ".join(changed))

    db.refresh(issue)
    logger.info("Issue updated successfully: %s", issue.id)
    return IssueCreated(
        issue=IssueOut.model_validate(issue),
        skipped_files=[SkippedFileOut.model_validate(s) for s in result.skipped],
    )


@router.delete("/{issue_id}", response_model=Message)
def delete_issue(
    issue_id: int,
    store: AttachmentStore = Depends(get_attachment_store),
    db: Session = Depends(get_db),
) -> Message:
    issue = get_or_404(db, Issue, issue_id, "Issue")
    store.delete_owner_attachments(db, OwnerKind.ISSUE, issue_id)
    db.execute(delete(IssueHistory).where(IssueHistory.issue_id == issue_id))
    db.delete(issue)
    db.commit()
    logger.info("Issue deleted successfully: %s", issue_id)
    return Message(message="Issue deleted successfully")


@router.post("/{issue_id}/history", response_model=HistoryOut, status_code=status.HTTP_201_CREATED)
def add_issue_history(
    issue_id: int,
    body: HistoryIn,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
) -> IssueHistory:
    get_or_404(db, Issue, issue_id, "Issue")
    entry = _record(db, issue_id, actor.user_id, body.action.strip().upper(), body.details)
    db.commit()
    db.refresh(entry)
    return entry


@router.get("/{issue_id}/history", response_model=Page[HistoryOut])
def list_issue_history(
    issue_id: int,
    paging: Pagination = Depends(pagination),
    db: Session = Depends(get_db),
) -> Page[HistoryOut]:
    get_or_404(db, Issue, issue_id, "Issue")
    stmt = (
        select(IssueHistory)
        .where(IssueHistory.issue_id == issue_id)
        .order_by(IssueHistory.created_at.desc(), IssueHistory.id.desc())
    )
    rows, total = paginate(db, stmt, paging)
    return Page.build([HistoryOut.model_validate(h) for h in rows], total, paging.page, paging.limit)


@router.post("/{issue_id}/files", response_model=UploadOut)
def upload_issue_files(
    issue_id: int,
    files: list[UploadFile] = File(...),
    store: AttachmentStore = Depends(get_attachment_store),
    db: Session = Depends(get_db),
) -> UploadOut:
    result = store.accept_uploads(db, OwnerKind.ISSUE, issue_id, incoming_files(files))
    return UploadOut(
        owner_id=issue_id,
        uploaded_files=[AttachmentOut.model_validate(a) for a in result.accepted],
        skipped_files=[SkippedFileOut.model_validate(s) for s in result.skipped],
    )
