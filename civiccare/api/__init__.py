from civiccare.api.backend import AuthBackend, LoginResult
from civiccare.api.client import ApiClient
from civiccare.api.services import ActivityService, AuthService, CivicApi, LeaderboardService, ReportService

__all__ = [
    "ActivityService",
    "ApiClient",
    "AuthBackend",
    "AuthService",
    "CivicApi",
    "LeaderboardService",
    "LoginResult",
    "ReportService",
]
