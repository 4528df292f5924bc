"""
Client session: who (if anyone) is logged in, restored at startup and kept in
sync with other contexts sharing the same store.
"""

from civiccare.core.session.manager import SessionManager
from civiccare.core.session.models import OutcomeKind, SessionOutcome, SessionStatus, SessionView, UserProfile
from civiccare.core.session.reconcile import is_auth_failure, reconcile_profile

__all__ = [
    "OutcomeKind",
    "SessionManager",
    "SessionOutcome",
    "SessionStatus",
    "SessionView",
    "UserProfile",
    "is_auth_failure",
    "reconcile_profile",
]
