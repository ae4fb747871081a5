from hireflow.db.base import Base
from hireflow.models.application import Application
from hireflow.models.audit import AuditLog
from hireflow.models.company import Company
from hireflow.models.event import WorkflowEvent
from hireflow.models.interview import Interview, Scorecard
from hireflow.models.job import JobApproval, JobRequisition
from hireflow.models.offer import Offer
from hireflow.models.user import User

__all__ = [
    "Base",
    "Application",
    "AuditLog",
    "Company",
    "Interview",
    "JobApproval",
    "JobRequisition",
    "Offer",
    "Scorecard",
    "User",
    "WorkflowEvent",
]
