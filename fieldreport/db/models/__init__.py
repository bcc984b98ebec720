# Import all models so SQLAlchemy metadata is fully populated on startup.
from fieldreport.db.models.user import User
from fieldreport.db.models.project import Project
from fieldreport.db.models.submission import Submission
from fieldreport.db.models.participant import Participant
from fieldreport.db.models.submission_photo import SubmissionPhoto
from fieldreport.db.models.workflow_log import WorkflowLog
from fieldreport.db.models.audit_log import AuditLog
from fieldreport.db.models.notification import Notification


__all__ = [
    "User",
    "Project",
    "Submission",
    "Participant",
    "SubmissionPhoto",
    "WorkflowLog",
    "AuditLog",
    "Notification",
]
