"""
Query layer for the analytics services.

Wraps the aggregation pipelines and counts the reports need over the four
source collections. Every method is a blocking pymongo call; the services
dispatch them with asyncio.to_thread and gather them concurrently.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId

from src.common.config import Config
from src.common.repositories import CollectionRepositoryInterface, get_repository

from .metrics import INTERVIEW_STATUSES, OFFER_STATUSES, SUCCESS_STATUSES, rank_top_n

logger = logging.getLogger(__name__)


def to_object_id(value: Any) -> Any:
    """Convert a 24-char hex id to ObjectId; leave anything else untouched."""
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def _count_if_in(statuses) -> Dict[str, Any]:
    """$sum expression counting documents whose status is in `statuses`."""
    return {"$sum": {"$cond": [{"$in": ["$status", list(statuses)]}, 1, 0]}}


class AnalyticsQueries:
    """
    Read-side queries over applications, users, sessions and resumes.

    Repositories default to the shared MongoDB factory; tests pass mocks.
    """

    def __init__(
        self,
        applications: Optional[CollectionRepositoryInterface] = None,
        users: Optional[CollectionRepositoryInterface] = None,
        sessions: Optional[CollectionRepositoryInterface] = None,
        resumes: Optional[CollectionRepositoryInterface] = None,
    ):
        self.applications = applications or get_repository(Config.JOB_APPLICATIONS_COLLECTION)
        self.users = users or get_repository(Config.USERS_COLLECTION)
        self.sessions = sessions or get_repository(Config.USER_SESSIONS_COLLECTION)
        self.resumes = resumes or get_repository(Config.RESUMES_COLLECTION)

    # ===== Counts =====

    def count_users(self, filter: Optional[Dict[str, Any]] = None) -> int:
        return self.users.count_documents(filter or {})

    def count_applications(self, filter: Optional[Dict[str, Any]] = None) -> int:
        return self.applications.count_documents(filter or {})

    def count_resumes(self, filter: Optional[Dict[str, Any]] = None) -> int:
        return self.resumes.count_documents(filter or {})

    def count_successful_applications(self) -> int:
        return self.applications.count_documents({"status": {"$in": list(SUCCESS_STATUSES)}})

    def count_distinct_session_users(self, since: datetime) -> int:
        return len(self.sessions.distinct("userId", {"loginTime": {"$gte": since}}))

    # ===== Dashboard aggregations =====

    def average_application_score(self) -> int:
        rows = self.applications.aggregate([
            {"$group": {"_id": None, "avgScore": {"$avg": "$metrics.applicationScore"}, "count": {"$sum": 1}}},
        ])
        if not rows:
            return 0
        return round(rows[0].get("avgScore") or 0)

    def top_companies(self, limit: int = 10) -> List[Dict[str, Any]]:
        """
        Companies by application count with their success rate.

        The pipeline returns every group sorted by count; the final top-N cut
        happens in Python so equal counts keep a stable order.
        """
        rows = self.applications.aggregate([
            {"$group": {"_id": "$companyName", "count": {"$sum": 1}, "successful": _count_if_in(SUCCESS_STATUSES)}},
            {"$project": {
                "_id": 0,
                "name": "$_id",
                "count": 1,
                "successRate": {"$round": [{"$multiply": [{"$divide": ["$successful", "$count"]}, 100]}, 0]},
            }},
            {"$sort": {"count": -1}},
        ])
        return rank_top_n(rows, "count", limit)

    def top_job_titles(self, limit: int = 10) -> List[Dict[str, Any]]:
        rows = self.applications.aggregate([
            {"$group": {"_id": "$jobTitle", "count": {"$sum": 1}, "avgScore": {"$avg": "$metrics.applicationScore"}}},
            {"$project": {"_id": 0, "title": "$_id", "count": 1, "avgScore": {"$round": ["$avgScore", 0]}}},
            {"$sort": {"count": -1}},
        ])
        return rank_top_n(rows, "count", limit)

    def application_outcomes(self) -> List[Dict[str, Any]]:
        """Metrics, status and interviews of every application (response-time stats)."""
        return self.applications.find({}, {"metrics": 1, "status": 1, "interviews": 1})

    def application_market_data(self) -> List[Dict[str, Any]]:
        """Description, location and compensation of every application."""
        return self.applications.find(
            {}, {"jobDescription": 1, "jobLocation": 1, "compensation": 1, "userId": 1}
        )

    def user_technical_skills(self) -> List[Dict[str, Any]]:
        return self.users.find({}, {"profile.technicalSkills": 1})

    def session_locations(self, since: datetime, until: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Unique users per (city, country) seen in sessions within [since, until)."""
        login_window: Dict[str, Any] = {"$gte": since}
        if until is not None:
            login_window["$lt"] = until

        return self.sessions.aggregate([
            {"$match": {"loginTime": login_window, "location.country": {"$exists": True, "$ne": None}}},
            {"$group": {
                "_id": {"city": "$location.city", "country": "$location.country"},
                "uniqueUsers": {"$addToSet": "$userId"},
                "totalSessions": {"$sum": 1},
            }},
            {"$project": {
                "_id": 0,
                "location": {"city": "$_id.city", "country": "$_id.country"},
                "userCount": {"$size": "$uniqueUsers"},
                "sessionCount": "$totalSessions",
            }},
            {"$sort": {"userCount": -1}},
        ])

    def top_performing_users(self, min_applications: int = 5, limit: int = 10) -> List[Dict[str, Any]]:
        """Users with at least `min_applications`, best success rate first, with display names."""
        rows = self.applications.aggregate([
            {"$group": {"_id": "$userId", "totalApplications": {"$sum": 1}, "successful": _count_if_in(SUCCESS_STATUSES)}},
            {"$match": {"totalApplications": {"$gte": min_applications}}},
            {"$project": {
                "userId": "$_id",
                "totalApplications": 1,
                "successRate": {"$round": [{"$multiply": [{"$divide": ["$successful", "$totalApplications"]}, 100]}, 0]},
            }},
            {"$sort": {"successRate": -1, "totalApplications": -1}},
            {"$limit": limit},
        ])
        if not rows:
            return []

        users = self.users.find(
            {"_id": {"$in": [row["userId"] for row in rows]}},
            {"firstName": 1, "lastName": 1},
        )
        names = {
            str(user["_id"]): f"{user.get('firstName', '')} {user.get('lastName', '')}".strip()
            for user in users
        }
        return [
            {
                "userId": str(row["userId"]),
                "userName": names.get(str(row["userId"])) or "Unknown User",
                "successRate": row.get("successRate") or 0,
                "totalApplications": row["totalApplications"],
            }
            for row in rows
        ]

    def status_distribution(self) -> Dict[str, int]:
        rows = self.applications.aggregate([
            {"$group": {"_id": "$status", "count": {"$sum": 1}}},
        ])
        return {row["_id"]: row["count"] for row in rows if row.get("_id")}

    def top_companies_simple(self, limit: int = 5) -> List[Dict[str, Any]]:
        rows = self.applications.aggregate([
            {"$group": {"_id": "$companyName", "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
            {"$project": {"_id": 0, "name": "$_id", "count": 1}},
        ])
        return rank_top_n(rows, "count", limit)

    # ===== Per-entity lookups =====

    def find_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.users.find_one({"_id": to_object_id(user_id)})

    def user_applications(self, user_id: str, limit: int = 0) -> List[Dict[str, Any]]:
        return self.applications.find(
            {"userId": to_object_id(user_id)},
            sort=[("applicationDate", -1)],
            limit=limit,
        )

    def user_sessions(
        self,
        user_id: str,
        since: Optional[datetime] = None,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        filter: Dict[str, Any] = {"userId": to_object_id(user_id)}
        if since is not None:
            filter["loginTime"] = {"$gte": since}
        return self.sessions.find(filter, sort=[("loginTime", -1)], limit=limit)

    def user_resumes(self, user_id: str, resume_id: Optional[str] = None) -> List[Dict[str, Any]]:
        filter: Dict[str, Any] = {"userId": to_object_id(user_id)}
        if resume_id:
            filter["_id"] = to_object_id(resume_id)
        return self.resumes.find(filter, sort=[("updatedAt", -1)])

    def find_application(self, application_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """One application, only if it belongs to `user_id`."""
        return self.applications.find_one({
            "_id": to_object_id(application_id),
            "userId": to_object_id(user_id),
        })

    def company_applications(self, company_name: str) -> List[Dict[str, Any]]:
        return self.applications.find({"companyName": company_name})

    def active_user_ids(self, since: datetime) -> List[str]:
        users = self.users.find({"lastLogin": {"$gte": since}}, {"_id": 1})
        return [str(user["_id"]) for user in users]

    # ===== Per-user production aggregations =====

    def weekly_applications(self, user_id: str, since: datetime) -> List[Dict[str, Any]]:
        rows = self.applications.aggregate([
            {"$match": {"userId": to_object_id(user_id), "applicationDate": {"$gte": since}}},
            {"$group": {
                "_id": {"year": {"$year": "$applicationDate"}, "week": {"$week": "$applicationDate"}},
                "applications": {"$sum": 1},
                "responses": {"$sum": {"$cond": [{"$ne": ["$status", "applied"]}, 1, 0]}},
                "interviews": _count_if_in(INTERVIEW_STATUSES),
            }},
            {"$sort": {"_id.year": 1, "_id.week": 1}},
        ])
        return [
            {
                "date": f"{row['_id']['year']}-W{row['_id']['week']}",
                "applications": row["applications"],
                "responses": row["responses"],
                "interviews": row["interviews"],
            }
            for row in rows
        ]

    def applications_by_source(self, user_id: str) -> List[Dict[str, Any]]:
        """Application count and offer count per job source, largest first."""
        return self.applications.aggregate([
            {"$match": {"userId": to_object_id(user_id)}},
            {"$group": {"_id": "$jobSource", "count": {"$sum": 1}, "offers": _count_if_in(OFFER_STATUSES)}},
            {"$sort": {"count": -1}},
        ])

    def user_top_companies(self, user_id: str, limit: int = 5) -> List[Dict[str, Any]]:
        """Top companies a user applied to, with successful-application counts."""
        rows = self.applications.aggregate([
            {"$match": {"userId": to_object_id(user_id)}},
            {"$group": {"_id": "$companyName", "count": {"$sum": 1}, "successful": _count_if_in(SUCCESS_STATUSES)}},
            {"$sort": {"count": -1}},
        ])
        return rank_top_n(rows, "count", limit)

    def monthly_stats(self, user_id: str, since: datetime) -> List[Dict[str, Any]]:
        rows = self.applications.aggregate([
            {"$match": {"userId": to_object_id(user_id), "applicationDate": {"$gte": since}}},
            {"$group": {
                "_id": {"year": {"$year": "$applicationDate"}, "month": {"$month": "$applicationDate"}},
                "applications": {"$sum": 1},
                "interviews": _count_if_in(INTERVIEW_STATUSES),
                "offers": _count_if_in(SUCCESS_STATUSES),
                "rejections": {"$sum": {"$cond": [{"$eq": ["$status", "rejected"]}, 1, 0]}},
            }},
            {"$sort": {"_id.year": 1, "_id.month": 1}},
        ])
        return [
            {
                "month": f"{row['_id']['year']}-{row['_id']['month']:02d}",
                "applications": row["applications"],
                "interviews": row["interviews"],
                "offers": row["offers"],
                "rejections": row["rejections"],
            }
            for row in rows
        ]

    # ===== Health =====

    def ping(self) -> bool:
        return self.applications.ping()
