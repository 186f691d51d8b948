"""
TTL configuration and cache key conventions for school data.
"""
from enum import Enum
from typing import Dict, Optional


class CacheTTL:
    """Shared TTL tiers (seconds) for ad-hoc caching."""
    STATIC = 10 * 60        # classes, subjects, config
    SEMI_DYNAMIC = 5 * 60   # students, teachers, schedules
    DYNAMIC = 2 * 60        # grades, payments
    REALTIME = 30           # notifications


class DataCategory(Enum):
    """Categories of school data with different freshness needs."""
    CLASSES = "classes"
    SUBJECTS = "subjects"
    SCHOOL_CONFIG = "school_config"
    STUDENTS = "students"
    TEACHERS = "teachers"
    EXAMS = "exams"
    ANNOUNCEMENTS = "announcements"
    PAYMENTS = "payments"
    SCHEDULES = "schedules"
    GRADES = "grades"
    RESULTS = "results"
    NOTIFICATIONS = "notifications"


# How long data stays fresh, by category (in seconds)
TTL_CONFIG: Dict[DataCategory, int] = {
    # Rarely changing
    DataCategory.CLASSES: 5 * 60,
    DataCategory.SUBJECTS: 5 * 60,
    DataCategory.SCHOOL_CONFIG: 10 * 60,
    # Semi-dynamic
    DataCategory.STUDENTS: 2 * 60,
    DataCategory.TEACHERS: 2 * 60,
    DataCategory.EXAMS: 3 * 60,
    DataCategory.ANNOUNCEMENTS: 3 * 60,
    DataCategory.PAYMENTS: 2 * 60,
    DataCategory.SCHEDULES: 3 * 60,
    # Changing often
    DataCategory.GRADES: 60,
    DataCategory.RESULTS: 2 * 60,
    DataCategory.NOTIFICATIONS: 30,
}


def get_ttl_for_category(category: DataCategory) -> int:
    """
    Get the fresh TTL for a data category.

    Unknown categories get the semi-dynamic tier.
    """
    return TTL_CONFIG.get(category, CacheTTL.SEMI_DYNAMIC)


def _join(*parts: Optional[str]) -> str:
    # Trailing missing parts are dropped, inner ones keep an empty slot
    values = ["" if p is None else str(p) for p in parts]
    while values and not values[-1]:
        values.pop()
    return ":".join(values)


class CacheKeys:
    """
    Standard cache key builders.

    Keys are colon-separated from general to specific, so one school's
    or one class's data can be dropped with a single prefix invalidation.
    Use prefix() for that: a bare key like "students:s1" also matches
    "students:s10".
    """

    @staticmethod
    def prefix(key: str) -> str:
        """Prefix matching every key below key, but not key itself."""
        return f"{key}:"

    @staticmethod
    def user_profile(user_id: str) -> str:
        return _join("user", user_id)

    @staticmethod
    def teacher_id(user_id: str) -> str:
        return _join("teacher", user_id)

    @staticmethod
    def dashboard(user_id: str, role: str) -> str:
        return _join("dash", user_id, role)

    @staticmethod
    def classes(school_id: Optional[str] = None) -> str:
        return _join("classes", school_id)

    @staticmethod
    def students(school_id: Optional[str] = None, class_id: Optional[str] = None) -> str:
        return _join("students", school_id, class_id)

    @staticmethod
    def teachers(school_id: Optional[str] = None) -> str:
        return _join("teachers", school_id)

    @staticmethod
    def subjects(school_id: Optional[str] = None, class_id: Optional[str] = None) -> str:
        return _join("subjects", school_id, class_id)

    @staticmethod
    def exams(school_id: Optional[str] = None, class_id: Optional[str] = None) -> str:
        return _join("exams", school_id, class_id)

    @staticmethod
    def grades(
        school_id: Optional[str] = None,
        class_id: Optional[str] = None,
        exam_id: Optional[str] = None,
        student_id: Optional[str] = None,
    ) -> str:
        return _join("grades", school_id, class_id, exam_id, student_id)

    @staticmethod
    def payments(school_id: Optional[str] = None, student_id: Optional[str] = None) -> str:
        return _join("payments", school_id, student_id)

    @staticmethod
    def announcements(school_id: Optional[str] = None, target_role: Optional[str] = None) -> str:
        return _join("announcements", school_id, target_role)

    @staticmethod
    def results(school_id: Optional[str] = None, semester: Optional[str] = None) -> str:
        return _join("results", school_id, semester)

    @staticmethod
    def schedules(
        school_id: Optional[str] = None,
        teacher_id: Optional[str] = None,
        class_id: Optional[str] = None,
    ) -> str:
        return _join("schedules", school_id, teacher_id, class_id)
