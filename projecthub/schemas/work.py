from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class CompanyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    address: str | None
    created_at: datetime


class CompanyIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    address: str | None = None


class CompanyUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    address: str | None = None


class AttachmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    file_path: str
    original_name: str
    created_at: datetime
    updated_at: datetime


class SkippedFileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    filename: str
    message: str


class UploadOut(BaseModel):
    owner_id: int
    uploaded_files: list[AttachmentOut]
    skipped_files: list[SkippedFileOut]


class UserBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    display_name: str | None


class ProjectBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None
    status: str
    start_date: date | None
    end_date: date | None
    archived: bool
    user_id: int
    company_id: int | None
    created_at: datetime
    updated_at: datetime
    files: list[AttachmentOut] = Field(default_factory=list)


class ProjectDetailOut(ProjectOut):
    user: UserBrief
    company: CompanyOut | None
    assigned_users: list[UserBrief]


class ProjectCreated(BaseModel):
    project: ProjectOut
    skipped_files: list[SkippedFileOut]


class AssignmentIn(BaseModel):
    project_id: int
    user_ids: list[int] = Field(min_length=1)


class UnassignmentIn(BaseModel):
    project_id: int
    user_id: int


class IssueOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None
    status: str
    start_date: date | None
    end_date: date | None
    project_id: int
    user_id: int
    created_at: datetime
    updated_at: datetime
    files: list[AttachmentOut] = Field(default_factory=list)


class IssueBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str


class IssueCreated(BaseModel):
    issue: IssueOut
    skipped_files: list[SkippedFileOut]


class HistoryIn(BaseModel):
    action: str = Field(min_length=1, max_length=64)
    details: str | None = None


class HistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    issue_id: int
    user_id: int
    action: str
    details: str | None
    created_at: datetime


class ActivityLogOut(HistoryOut):
    """An issue history entry as listed on the project's activity log."""

    issue: IssueBrief
    user: UserBrief


class ProjectStatsOut(BaseModel):
    total_projects: int
    total_issues: int
    completed_issues: int
    ongoing_issues: int


class ProjectFileEntry(BaseModel):
    """A project file or an issue file of that project, as listed on the project's file tab."""

    id: int
    file_path: str
    original_name: str
    type: str
    issue: IssueBrief | None = None
    updated_at: datetime


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    price: float | None
    location: str | None
    company_name: str | None
    status: str
    start_date: date | None
    end_date: date | None
    archived: bool
    user_id: int
    created_at: datetime
    updated_at: datetime
    files: list[AttachmentOut] = Field(default_factory=list)


class OrderStatsOut(BaseModel):
    total_orders: int
    in_progress_orders: int
    pending_orders: int
    completed_orders: int


class OrderCreated(BaseModel):
    order: OrderOut
    skipped_files: list[SkippedFileOut]


class ArchiveOut(BaseModel):
    id: int
    archived: bool

