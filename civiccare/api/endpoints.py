from __future__ import annotations


# Authentication
REGISTER = "/auth/register/"
LOGIN = "/auth/login/"
LOGOUT = "/auth/logout/"
PROFILE = "/auth/profile/"
USER_STATS = "/auth/stats/"
COMMUNITY_STATS = "/auth/community-stats/"

# Reports
REPORTS = "/reports/"
REPORT_CATEGORIES = "/reports/categories/"
REPORT_STATS = "/reports/stats/"
PUBLIC_REPORT_STATS = "/reports/public-stats/"

# Activities
ACTIVITIES = "/activities/"
PARTICIPATE_ACTIVITY = "/activities/participate/"
MY_PARTICIPATIONS = "/activities/my-participations/"
ACTIVITY_STATS = "/activities/stats/"
PUBLIC_ACTIVITY_STATS = "/activities/public-stats/"
ACTIVITY_CATEGORIES = "/activities/categories/"

# Leaderboard
LEADERBOARD = "/leaderboard/"
BADGES = "/leaderboard/badges/"
MY_BADGES = "/leaderboard/my-badges/"
MY_RANKING = "/leaderboard/my-ranking/"
POINT_HISTORY = "/leaderboard/point-history/"
LEADERBOARD_STATS = "/leaderboard/stats/"
CHECK_BADGES = "/leaderboard/check-badges/"
PUBLIC_LEADERBOARD_STATS = "/leaderboard/public-stats/"


def report_detail(report_id: int) -> str:
    return f"/reports/{int(report_id)}/"


def update_report_status(report_id: int) -> str:
    return f"/reports/{int(report_id)}/update-status/"


def activity_detail(activity_id: int) -> str:
    return f"/activities/{int(activity_id)}/"


def submit_feedback(participation_id: int) -> str:
    return f"/activities/participations/{int(participation_id)}/feedback/"
