from .base import BaseModel
from .user import User, RoleType
from .course import Course, Enrollment, EnrollmentStatus
from .group import Group, GroupScheduleEntry, GroupStatus, group_students
from .session import Session, SessionStatus
from .attendance import AttendanceRecord, StudentAttendance, AttendanceStatus
from .evaluation import SessionEvaluation

__all__ = [
    'BaseModel',
    'User',
    'RoleType',
    'Course',
    'Enrollment',
    'EnrollmentStatus',
    'Group',
    'GroupScheduleEntry',
    'GroupStatus',
    'group_students',
    'Session',
    'SessionStatus',
    'AttendanceRecord',
    'StudentAttendance',
    'AttendanceStatus',
    'SessionEvaluation'
]
