from feedback_dashboard.models.user import User
from feedback_dashboard.models.feedback import Feedback
from feedback_dashboard.models.issue import Issue

__all__ = [
    "User",
    "Feedback",
    "Issue",
]
