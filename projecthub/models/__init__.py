from projecthub.models.security import Permission, Role, User, role_permissions, user_permissions
from projecthub.models.work import (
    Company,
    Issue,
    IssueFile,
    IssueHistory,
    Order,
    OrderFile,
    Project,
    ProjectFile,
    project_assignments,
)

__all__ = [
    "Company",
    "Issue",
    "IssueFile",
    "IssueHistory",
    "Order",
    "OrderFile",
    "Permission",
    "Project",
    "ProjectFile",
    "Role",
    "User",
    "project_assignments",
    "role_permissions",
    "user_permissions",
]
