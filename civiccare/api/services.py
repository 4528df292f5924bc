from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from civiccare.api import endpoints as ep
from civiccare.api.client import ApiClient


def _as_data(res: Any) -> Dict[str, Any]:
    """Normalize list responses: bare list, paginated {results}, or {data}."""
    if isinstance(res, list):
        return {"data": res}
    if isinstance(res, dict):
        if isinstance(res.get("results"), list):
            return {"data": res["results"]}
        if "data" in res:
            return {"data": res["data"]}
    return {"data": []}


@dataclass
class AuthService:
    client: ApiClient

    def register(self, fields: Mapping[str, Any], *, files: Optional[Mapping[str, Any]] = None) -> Any:
        # multipart, like the web signup form
        return self.client.post(ep.REGISTER, data=dict(fields), files=dict(files or {}), use_token=False)

    def login(self, identifier: str, password: str) -> Any:
        return self.client.post(ep.LOGIN, json={"identifier": identifier, "password": password}, use_token=False)

    def logout(self, *, token: Optional[str] = None) -> Any:
        return self.client.post(ep.LOGOUT, token=token)

    def get_profile(self, *, token: Optional[str] = None) -> Any:
        return self.client.get(ep.PROFILE, token=token)

    def update_profile(self, data: Mapping[str, Any]) -> Any:
        return self.client.put(ep.PROFILE, json=dict(data))

    def get_user_stats(self) -> Any:
        return self.client.get(ep.USER_STATS)

    def get_community_stats(self) -> Any:
        return self.client.get(ep.COMMUNITY_STATS)


@dataclass
class ReportService:
    client: ApiClient

    def list(self, filters: Optional[Mapping[str, Any]] = None) -> Any:
        return self.client.get(ep.REPORTS, params=dict(filters or {}))

    def create(self, data: Mapping[str, Any], *, media: Optional[Mapping[str, Any]] = None) -> Any:
        res = self.client.post(ep.REPORTS, data=dict(data), files=dict(media or {}))
        # backend may return the report itself or wrap it in {"data": ...}
        if isinstance(res, dict):
            if res.get("id") is not None:
                return {"data": res}
            if res.get("data"):
                return res
            return {"data": res}
        return res

    def get(self, report_id: int) -> Any:
        return self.client.get(ep.report_detail(report_id))

    def update(self, report_id: int, data: Mapping[str, Any]) -> Any:
        return self.client.put(ep.report_detail(report_id), json=dict(data))

    def delete(self, report_id: int) -> Any:
        return self.client.delete(ep.report_detail(report_id))

    def update_status(self, report_id: int, status: str) -> Any:
        return self.client.post(ep.update_report_status(report_id), json={"status": status})

    def categories(self) -> Dict[str, Any]:
        return _as_data(self.client.get(ep.REPORT_CATEGORIES))

    def stats(self) -> Any:
        return self.client.get(ep.REPORT_STATS)

    def public_stats(self) -> Any:
        return self.client.get(ep.PUBLIC_REPORT_STATS, use_token=False)


@dataclass
class ActivityService:
    client: ApiClient

    def list(self, filters: Optional[Mapping[str, Any]] = None) -> Any:
        return self.client.get(ep.ACTIVITIES, params=dict(filters or {}))

    def get(self, activity_id: int) -> Any:
        return self.client.get(ep.activity_detail(activity_id))

    def participate(self, activity_id: int) -> Any:
        return self.client.post(ep.PARTICIPATE_ACTIVITY, json={"activity": int(activity_id)})

    def my_participations(self) -> Any:
        return self.client.get(ep.MY_PARTICIPATIONS)

    def submit_feedback(self, participation_id: int, feedback: str, rating: int) -> Any:
        return self.client.post(ep.submit_feedback(participation_id), json={"feedback": feedback, "rating": int(rating)})

    def stats(self) -> Any:
        return self.client.get(ep.ACTIVITY_STATS)

    def public_stats(self) -> Any:
        return self.client.get(ep.PUBLIC_ACTIVITY_STATS, use_token=False)

    def categories(self) -> Any:
        return self.client.get(ep.ACTIVITY_CATEGORIES)


@dataclass
class LeaderboardService:
    client: ApiClient

    def leaderboard(self) -> Any:
        return self.client.get(ep.LEADERBOARD)

    def badges(self) -> Any:
        return self.client.get(ep.BADGES)

    def my_badges(self) -> Any:
        return self.client.get(ep.MY_BADGES)

    def my_ranking(self) -> Any:
        return self.client.get(ep.MY_RANKING)

    def point_history(self) -> Any:
        return self.client.get(ep.POINT_HISTORY)

    def check_badges(self) -> Any:
        return self.client.post(ep.CHECK_BADGES)

    def stats(self) -> Any:
        return self.client.get(ep.LEADERBOARD_STATS)

    def public_stats(self) -> Any:
        return self.client.get(ep.PUBLIC_LEADERBOARD_STATS, use_token=False)


@dataclass
class CivicApi:
    client: ApiClient

    def __post_init__(self) -> None:
        self.auth = AuthService(self.client)
        self.reports = ReportService(self.client)
        self.activities = ActivityService(self.client)
        self.leaderboard = LeaderboardService(self.client)
