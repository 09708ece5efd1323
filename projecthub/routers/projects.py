from __future__ import annotations

from datetime import date
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, selectinload

from projecthub.db.session import get_db
from projecthub.models.security import User
from projecthub.models.work import Company, Issue, IssueFile, IssueHistory, Project, ProjectFile
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
    ActivityLogOut,
    ArchiveOut,
    AssignmentIn,
    AttachmentOut,
    IssueBrief,
    IssueOut,
    ProjectBrief,
    ProjectCreated,
    ProjectDetailOut,
    ProjectFileEntry,
    ProjectOut,
    ProjectStatsOut,
    SkippedFileOut,
    UnassignmentIn,
    UploadOut,
)
from projecthub.security.context import Actor
from projecthub.security.dependencies import get_current_actor
from projecthub.storage.attachments import AttachmentStore, OwnerKind

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/project", tags=["projects"])


def _project_query(archived: bool, filters: ListFilters):
    stmt = select(Project).where(Project.archived.is_(archived)).options(selectinload(Project.files))
    return filters.apply(stmt, Project, Project.title)


def _ensure_company(db: Session, company_id: int | None) -> None:
    if company_id is not None:
        get_or_404(db, Company, company_id, "Company")


def _load_detail(db: Session, project_id: int) -> Project:
    project = db.scalars(
        select(Project)
        .where(Project.id == project_id)
        .options(
            selectinload(Project.files),
            selectinload(Project.user),
            selectinload(Project.company),
            selectinload(Project.assigned_users),
        )
    ).first()
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found!")
    return project


@router.post("", response_model=ProjectCreated, status_code=status.HTTP_201_CREATED)
def create_project(
    title: str = Form(min_length=1),
    project_status: str = Form(alias="status", min_length=1),
    description: str | None = Form(default=None),
    start_date: date | None = Form(default=None),
    end_date: date | None = Form(default=None),
    company_id: int | None = Form(default=None),
    files: list[UploadFile] | None = File(default=None),
    actor: Actor = Depends(get_current_actor),
    store: AttachmentStore = Depends(get_attachment_store),
    db: Session = Depends(get_db),
) -> ProjectCreated:
    check_date_range(start_date, end_date)
    _ensure_company(db, company_id)

    with store.batch(db) as batch:
        project = Project(
            title=title.strip(),
            description=description,
            status=project_status.strip().upper(),
            start_date=start_date,
            end_date=end_date,
            company_id=company_id,
            user_id=actor.user_id,
        )
        db.add(project)
        db.flush()
        result = batch.accept(OwnerKind.PROJECT, project.id, incoming_files(files))

    db.refresh(project)
    logger.info("Project created successfully: %s", project.id)
    return ProjectCreated(
        project=ProjectOut.model_validate(project),
        skipped_files=[SkippedFileOut.model_validate(s) for s in result.skipped],
    )


@router.get("", response_model=Page[ProjectOut])
def list_projects(
    filters: ListFilters = Depends(list_filters),
    paging: Pagination = Depends(pagination),
    db: Session = Depends(get_db),
) -> Page[ProjectOut]:
    rows, total = paginate(db, _project_query(False, filters), paging)
    return Page.build([ProjectOut.model_validate(p) for p in rows], total, paging.page, paging.limit)


@router.get("/list", response_model=Page[ProjectBrief])
def list_project_names(
    paging: Pagination = Depends(pagination),
    db: Session = Depends(get_db),
) -> Page[ProjectBrief]:
    stmt = select(Project).where(Project.archived.is_(False)).order_by(Project.title)
    rows, total = paginate(db, stmt, paging)
    return Page.build([ProjectBrief.model_validate(p) for p in rows], total, paging.page, paging.limit)


@router.get("/archived/list", response_model=Page[ProjectOut])
def list_archived_projects(
    filters: ListFilters = Depends(list_filters),
    paging: Pagination = Depends(pagination),
    db: Session = Depends(get_db),
) -> Page[ProjectOut]:
    rows, total = paginate(db, _project_query(True, filters), paging)
    return Page.build([ProjectOut.model_validate(p) for p in rows], total, paging.page, paging.limit)


@router.get("/dashboard/stats", response_model=ProjectStatsOut)
def project_stats(db: Session = Depends(get_db)) -> ProjectStatsOut:
    def issues_with(status_value: str) -> int:
        return db.scalar(select(func.count()).select_from(Issue).where(Issue.status == status_value)) or 0

    return ProjectStatsOut(
        total_projects=db.scalar(select(func.count()).select_from(Project)) or 0,
        total_issues=db.scalar(select(func.count()).select_from(Issue)) or 0,
        completed_issues=issues_with("COMPLETED"),
        ongoing_issues=issues_with("ON GOING"),
    )


@router.get("/dashboard/recent", response_model=Page[ProjectOut])
def recent_projects(
    filters: ListFilters = Depends(list_filters),
    paging: Pagination = Depends(pagination),
    db: Session = Depends(get_db),
) -> Page[ProjectOut]:
    """Latest active projects for the dashboard; newest first unless `sort_order=asc`."""
    rows, total = paginate(db, _project_query(False, filters), paging)
    return Page.build([ProjectOut.model_validate(p) for p in rows], total, paging.page, paging.limit)


@router.post("/assign", response_model=ProjectDetailOut)
def assign_users(body: AssignmentIn, db: Session = Depends(get_db)) -> Project:
    project = _load_detail(db, body.project_id)
    users = list(db.scalars(select(User).where(User.id.in_(body.user_ids))).all())
    missing = set(body.user_ids) - {u.id for u in users}
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User not found: {', '.join(str(i) for i in sorted(missing))}",
        )

    assigned = {u.id for u in project.assigned_users}
    for user in users:
        if user.id not in assigned:
            project.assigned_users.append(user)
    db.commit()
    logger.info("Assigned users %s to project %s", sorted(body.user_ids), project.id)
    return _load_detail(db, project.id)


@router.post("/unassign", response_model=ProjectDetailOut)
def unassign_user(body: UnassignmentIn, db: Session = Depends(get_db)) -> Project:
    project = _load_detail(db, body.project_id)
    user = next((u for u in project.assigned_users if u.id == body.user_id), None)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User is not assigned to this project")
    project.assigned_users.remove(user)
    db.commit()
    logger.info("Unassigned user %s from project %s", body.user_id, project.id)
    return _load_detail(db, project.id)


@router.delete("/file/{file_id}", response_model=Message)
def delete_project_file(
    file_id: int,
    store: AttachmentStore = Depends(get_attachment_store),
    db: Session = Depends(get_db),
) -> Message:
    store.delete_attachment(db, OwnerKind.PROJECT, file_id)
    db.commit()
    return Message(message="File deleted successfully")


@router.get("/{project_id}", response_model=ProjectDetailOut)
def get_project(project_id: int, db: Session = Depends(get_db)) -> Project:
    return _load_detail(db, project_id)


@router.put("/{project_id}", response_model=ProjectCreated)
def update_project(
    project_id: int,
    title: str | None = Form(default=None, min_length=1),
    project_status: str | None = Form(default=None, alias="status", min_length=1),
    description: str | None = Form(default=None),
    start_date: date | None = Form(default=None),
    end_date: date | None = Form(default=None),
    company_id: int | None = Form(default=None),
    files: list[UploadFile] | None = File(default=None),
    store: AttachmentStore = Depends(get_attachment_store),
    db: Session = Depends(get_db),
) -> ProjectCreated:
    project = get_or_404(db, Project, project_id, "Project")
    check_date_range(start_date or project.start_date, end_date or project.end_date)
    _ensure_company(db, company_id)

    with store.batch(db) as batch:
        if title is not None:
            project.title = title.strip()
        if project_status is not None:
            project.status = project_status.strip().upper()
        if description is not None:
            project.description = description
        if start_date is not None:
            project.start_date = start_date
        if end_date is not None:
            project.end_date = end_date
        if company_id is not None:
            project.company_id = company_id
        db.flush()
        result = batch.accept(OwnerKind.PROJECT, project.id, incoming_files(files))

    db.refresh(project)
    logger.info("Project updated successfully: %s", project.id)
    return ProjectCreated(
        project=ProjectOut.model_validate(project),
        skipped_files=[SkippedFileOut.model_validate(s) for s in result.skipped],
    )


@router.delete("/{project_id}", response_model=Message)
def delete_project(
    project_id: int,
    store: AttachmentStore = Depends(get_attachment_store),
    db: Session = Depends(get_db),
) -> Message:
    project = get_or_404(db, Project, project_id, "Project")

    issue_ids = list(db.scalars(select(Issue.id).where(Issue.project_id == project_id)).all())
    for issue_id in issue_ids:
        store.delete_owner_attachments(db, OwnerKind.ISSUE, issue_id)
    if issue_ids:
        db.execute(delete(IssueHistory).where(IssueHistory.issue_id.in_(issue_ids)))
        db.execute(delete(Issue).where(Issue.id.in_(issue_ids)))
    store.delete_owner_attachments(db, OwnerKind.PROJECT, project_id)

    project.assigned_users.clear()
    db.delete(project)
    db.commit()
    logger.info("Project deleted successfully: %s (issues=%s)", project_id, len(issue_ids))
    return Message(message="Project deleted successfully")


@router.patch("/{project_id}/toggle-archive", response_model=ArchiveOut)
def toggle_archive_project(project_id: int, db: Session = Depends(get_db)) -> ArchiveOut:
    project = get_or_404(db, Project, project_id, "Project")
    project.archived = not project.archived
    db.commit()
    logger.info("Project %s archived=%s", project_id, project.archived)
    return ArchiveOut(id=project.id, archived=project.archived)


@router.post("/{project_id}/files", response_model=UploadOut)
def upload_project_files(
    project_id: int,
    files: list[UploadFile] = File(...),
    store: AttachmentStore = Depends(get_attachment_store),
    db: Session = Depends(get_db),
) -> UploadOut:
    result = store.accept_uploads(db, OwnerKind.PROJECT, project_id, incoming_files(files))
    return UploadOut(
        owner_id=project_id,
        uploaded_files=[AttachmentOut.model_validate(a) for a in result.accepted],
        skipped_files=[SkippedFileOut.model_validate(s) for s in result.skipped],
    )


@router.get("/{project_id}/files", response_model=Page[ProjectFileEntry])
def list_project_files(
    project_id: int,
    paging: Pagination = Depends(pagination),
    store: AttachmentStore = Depends(get_attachment_store),
    db: Session = Depends(get_db),
) -> Page[ProjectFileEntry]:
    """Project files and the files of its issues, limited to those still present on disk."""
    get_or_404(db, Project, project_id, "Project")

    entries: list[ProjectFileEntry] = []
    for f in db.scalars(select(ProjectFile).where(ProjectFile.project_id == project_id)).all():
        if store.exists_on_disk(f):
            entries.append(
                ProjectFileEntry(
                    id=f.id, file_path=f.file_path, original_name=f.original_name, type="project", updated_at=f.updated_at
                )
            )
    issue_files = db.scalars(
        select(IssueFile)
        .join(Issue, IssueFile.issue_id == Issue.id)
        .where(Issue.project_id == project_id)
        .options(selectinload(IssueFile.issue))
    ).all()
    for f in issue_files:
        if store.exists_on_disk(f):
            entries.append(
                ProjectFileEntry(
                    id=f.id,
                    file_path=f.file_path,
                    original_name=f.original_name,
                    type="issue",
                    issue=IssueBrief.model_validate(f.issue),
                    updated_at=f.updated_at,
                )
            )

    entries.sort(key=lambda e: e.updated_at, reverse=True)
    page_items = entries[paging.offset : paging.offset + paging.limit]
    return Page.build(page_items, len(entries), paging.page, paging.limit)


@router.get("/{project_id}/issues", response_model=list[IssueOut])
def list_project_issues(project_id: int, db: Session = Depends(get_db)) -> list[Issue]:
    get_or_404(db, Project, project_id, "Project")
    stmt = (
        select(Issue)
        .where(Issue.project_id == project_id)
        .options(selectinload(Issue.files))
        .order_by(Issue.created_at.desc(), Issue.id.desc())
    )
    return list(db.scalars(stmt).all())


@router.get("/{project_id}/activity-logs", response_model=Page[ActivityLogOut])
def list_project_activity(
    project_id: int,
    issue_id: int | None = Query(default=None),
    paging: Pagination = Depends(pagination),
    db: Session = Depends(get_db),
) -> Page[ActivityLogOut]:
    """History of every issue in the project, newest first; `issue_id` narrows it to one issue."""
    get_or_404(db, Project, project_id, "Project")
    stmt = (
        select(IssueHistory)
        .join(Issue, IssueHistory.issue_id == Issue.id)
        .where(Issue.project_id == project_id)
        .options(selectinload(IssueHistory.issue), selectinload(IssueHistory.user))
        .order_by(IssueHistory.created_at.desc(), IssueHistory.id.desc())
    )
    if issue_id is not None:
        stmt = stmt.where(IssueHistory.issue_id == issue_id)
    rows, total = paginate(db, stmt, paging)
    return Page.build([ActivityLogOut.model_validate(h) for h in rows], total, paging.page, paging.limit)
