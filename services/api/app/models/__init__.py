from .analysis import Analysis
from .quota_state import QuotaState
from .user import User

__all__ = [
    "Analysis",
    "QuotaState",
    "User",
]
