"""SQLAlchemy model package for the CRM schema."""

from weberis.models.agreement import AgreementType, ServiceAgreement
from weberis.models.base import Base
from weberis.models.business import Business, Contact
from weberis.models.enums import (
    AgreementStatus,
    BillingCycle,
    LeadSource,
    LeadStatus,
    NotificationType,
    OfferStatus,
    ProjectStatus,
    TaskPriority,
    TaskStatus,
)
from weberis.models.lead import Lead, Offer
from weberis.models.project import Project, Task
from weberis.models.role import ADMIN_ROLE_NAME, Permission, Role, role_permissions
from weberis.models.setting import Notification, Setting
from weberis.models.time_entry import TimeEntry
from weberis.models.user import User, UserSession

__all__ = [
    "ADMIN_ROLE_NAME",
    "AgreementStatus",
    "AgreementType",
    "Base",
    "BillingCycle",
    "Business",
    "Contact",
    "Lead",
    "LeadSource",
    "LeadStatus",
    "Notification",
    "NotificationType",
    "Offer",
    "OfferStatus",
    "Permission",
    "Project",
    "ProjectStatus",
    "Role",
    "ServiceAgreement",
    "Setting",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "TimeEntry",
    "User",
    "UserSession",
    "role_permissions",
]
