# services/stats_service.py
"""
Rollups over sessions and attendance for dashboards and alerting.
Group averages, trainer rankings, course popularity, low-attendance alerts,
trends and trainer notifications, all computed on demand.
"""

import logging
from collections import OrderedDict
from datetime import timedelta

from flask import current_app
from sqlalchemy import func

from trainhub.extensions import db
from trainhub.models import (
    AttendanceRecord, AttendanceStatus, StudentAttendance, Course, Enrollment, EnrollmentStatus,
    Group, GroupStatus, Session, SessionStatus, User, RoleType
)
from trainhub.services.attendance_service import (
    AttendanceService, ScopeKey, SESSION_ATTENDED_STATUSES, STUDENT_ATTENDED_STATUSES
)
from trainhub.services.group_service import GroupService
from trainhub.utils.time_utils import get_now, round_half_up

# Aggregation policy
LOW_ATTENDANCE_THRESHOLD = 70
EXCLUDE_EMPTY_SESSIONS = True
NO_DATA_SCORE = 0

PRIORITY_ORDER = {'high': 1, 'medium': 2, 'low': 3}

__all__ = [
    'StatsService', 'LOW_ATTENDANCE_THRESHOLD', 'EXCLUDE_EMPTY_SESSIONS', 'NO_DATA_SCORE',
    'SESSION_ATTENDED_STATUSES', 'STUDENT_ATTENDED_STATUSES'
]


def _threshold():
    return current_app.config.get('LOW_ATTENDANCE_THRESHOLD', LOW_ATTENDANCE_THRESHOLD)


def _one_decimal(part, whole):
    if not whole:
        return 0.0
    return round(part * 100 / whole, 1)


class StatsService:
    """Service class for on-demand statistics."""

    @staticmethod
    def group_attendance(group):
        """
        Average attendance rate of a group.

        Averages the session attendance_rate over the group's non-cancelled
        sessions whose attendance sheet has at least one entry. Sessions sharing
        a sheet are counted once.

        Returns:
            int or None: None when no session has recorded attendance yet
        """
        sessions = (
            group.sessions
            .filter(Session.status != SessionStatus.CANCELLED)
            .order_by(Session.scheduled_date, Session.ordinal)
            .all()
        )
        roster = GroupService.roster_ids(group)

        rates = []
        seen_scopes = set()
        for session in sessions:
            if not session.course_id or not session.scheduled_date:
                continue
            scope_key = ScopeKey.for_session(session)
            if scope_key in seen_scopes:
                continue
            seen_scopes.add(scope_key)

            record = AttendanceService.get_record(scope_key)
            if record is None or (EXCLUDE_EMPTY_SESSIONS and not record.entries):
                continue
            rates.append(AttendanceService.summarize_entries(record.entries, roster)['attendance_rate'])

        if not rates:
            return None
        return round_half_up(sum(rates) / len(rates))

    @staticmethod
    def refresh_group_stats(group):
        """Store the computed average on the group (0 when there is no data yet)."""
        average = StatsService.group_attendance(group)
        group.average_attendance = NO_DATA_SCORE if average is None else average
        db.session.commit()

        logging.getLogger('stats_service').info(
            f"Group {group.id} average attendance refreshed: {group.average_attendance}")
        return group.average_attendance

    @staticmethod
    def group_stats(group):
        average = StatsService.group_attendance(group)
        return {
            'group_id': group.id,
            'group_name': group.name,
            'average_attendance': average,
            'has_data': average is not None,
            'total_sessions': group.total_sessions,
            'completed_sessions': group.completed_sessions,
            'percentage_complete': group.percentage_complete,
            'enrolled_count': group.enrolled_count
        }

    @staticmethod
    def trainer_ranking(limit=None):
        """
        Rank trainers by the mean of their active groups' average attendance.

        Groups without data count as NO_DATA_SCORE; trainers without active
        groups score NO_DATA_SCORE. Ties are broken by name.
        """
        if limit is None:
            limit = current_app.config.get('TOP_TRAINERS_LIMIT', 5)

        trainers = db.session.query(User).filter(User.role == RoleType.TRAINER).all()

        ranking = []
        for trainer in trainers:
            groups = (
                db.session.query(Group)
                .filter(Group.trainer_id == trainer.id, Group.status == GroupStatus.ACTIVE)
                .all()
            )
            scores = []
            for group in groups:
                average = StatsService.group_attendance(group)
                scores.append(NO_DATA_SCORE if average is None else average)

            score = round(sum(scores) / len(scores), 1) if scores else NO_DATA_SCORE
            ranking.append({
                'trainer_id': trainer.id,
                'trainer_name': trainer.name,
                'trainer_email': trainer.email,
                'total_groups': len(groups),
                'average_attendance': score
            })

        ranking.sort(key=lambda item: (-item['average_attendance'], item['trainer_name']))
        return ranking[:limit] if limit else ranking

    @staticmethod
    def course_popularity(limit=None):
        """Enrollment counts and completion rate per course, most enrolled first."""
        if limit is None:
            limit = current_app.config.get('COURSE_POPULARITY_LIMIT', 10)

        rows = (
            db.session.query(Enrollment.course_id, Enrollment.status, func.count(Enrollment.id))
            .group_by(Enrollment.course_id, Enrollment.status)
            .all()
        )
        counts = {}
        for course_id, status, count in rows:
            counts.setdefault(course_id, {})[status] = count

        results = []
        for course in db.session.query(Course).all():
            by_status = counts.get(course.id, {})
            total = sum(by_status.values())
            completed = by_status.get(EnrollmentStatus.COMPLETED, 0)
            results.append({
                'course_id': course.id,
                'title': course.title,
                'category': course.category,
                'total_enrollments': total,
                'active_enrollments': by_status.get(EnrollmentStatus.ACTIVE, 0),
                'completed_enrollments': completed,
                'completion_rate': _one_decimal(completed, total)
            })

        results.sort(key=lambda item: (-item['total_enrollments'], item['title']))
        return results[:limit] if limit else results

    @staticmethod
    def low_attendance_alerts(trainer_id=None):
        """Active groups whose average is above zero but under the threshold."""
        threshold = _threshold()

        query = db.session.query(Group).filter(Group.status == GroupStatus.ACTIVE)
        if trainer_id is not None:
            query = query.filter(Group.trainer_id == trainer_id)

        alerts = []
        for group in query.order_by(Group.name).all():
            average = StatsService.group_attendance(group)
            if average is None or not 0 < average < threshold:
                continue
            alerts.append({
                'type': 'low_attendance',
                'group_id': group.id,
                'group_name': group.name,
                'trainer_id': group.trainer_id,
                'average_attendance': average,
                'threshold': threshold,
                'message': f'{group.name} has {average}% attendance'
            })

        if alerts:
            logging.getLogger('stats_service').warning(
                f"{len(alerts)} group(s) below {threshold}% attendance")
        return alerts

    @staticmethod
    def dashboard_overview(now=None):
        """Platform totals plus flat attendance and completion rates."""
        now = now or get_now()

        total_trainers = db.session.query(User).filter(User.role == RoleType.TRAINER).count()
        active_trainers = (
            db.session.query(User)
            .filter(User.role == RoleType.TRAINER, User.is_active.is_(True))
            .count()
        )
        total_groups = db.session.query(Group).count()
        active_groups = db.session.query(Group).filter(Group.status == GroupStatus.ACTIVE).count()
        total_students = db.session.query(User).filter(User.role == RoleType.STUDENT).count()

        total_enrollments = db.session.query(Enrollment).count()
        active_enrollments = (
            db.session.query(Enrollment).filter(Enrollment.status == EnrollmentStatus.ACTIVE).count()
        )
        completed_enrollments = (
            db.session.query(Enrollment).filter(Enrollment.status == EnrollmentStatus.COMPLETED).count()
        )
        recent_enrollments = (
            db.session.query(Enrollment)
            .filter(Enrollment.created_at >= now - timedelta(days=30))
            .count()
        )

        total_entries = db.session.query(StudentAttendance).count()
        attended_entries = (
            db.session.query(StudentAttendance)
            .filter(StudentAttendance.status.in_(SESSION_ATTENDED_STATUSES))
            .count()
        )

        return {
            'trainers': {
                'total': total_trainers,
                'active': active_trainers,
                'inactive': total_trainers - active_trainers
            },
            'groups': {
                'total': total_groups,
                'active': active_groups,
                'inactive': total_groups - active_groups
            },
            'students': {'total': total_students},
            'enrollments': {
                'total': total_enrollments,
                'active': active_enrollments,
                'recent': recent_enrollments
            },
            'performance': {
                'attendance_rate': _one_decimal(attended_entries, total_entries),
                'completion_rate': _one_decimal(completed_enrollments, total_enrollments)
            }
        }

    @staticmethod
    def attendance_trends(days=None, now=None):
        """Per-date status totals for the last `days` days, oldest first."""
        days = days or current_app.config.get('TRENDS_DEFAULT_DAYS', 30)
        now = now or get_now()
        since = now.date() - timedelta(days=days)

        rows = (
            db.session.query(AttendanceRecord.session_date, StudentAttendance.status,
                             func.count(StudentAttendance.id))
            .join(StudentAttendance, StudentAttendance.record_id == AttendanceRecord.id)
            .filter(AttendanceRecord.session_date >= since,
                    AttendanceRecord.session_date <= now.date())
            .group_by(AttendanceRecord.session_date, StudentAttendance.status)
            .order_by(AttendanceRecord.session_date)
            .all()
        )

        trends = OrderedDict()
        for session_date, status, count in rows:
            day = trends.setdefault(session_date, {status_name: 0 for status_name in AttendanceStatus.ALL})
            day[status] = count

        return [
            dict(date=session_date.isoformat(), total=sum(counts.values()), **counts)
            for session_date, counts in trends.items()
        ]

    @staticmethod
    def trainer_notifications(trainer_id, now=None):
        """
        Actionable notices for a trainer, sorted by priority then most recent first.

        - sessions still to start today (high)
        - sessions completed within EVALUATION_REMINDER_DAYS without an evaluation (medium)
        - active groups below the attendance threshold (medium)
        """
        now = now or get_now()
        today = now.date()
        notifications = []

        upcoming = (
            db.session.query(Session)
            .filter(Session.trainer_id == trainer_id,
                    Session.scheduled_date == today,
                    Session.status == SessionStatus.SCHEDULED)
            .order_by(Session.start_time)
            .all()
        )
        for session in upcoming:
            if session.scheduled_start is None or session.scheduled_start <= now:
                continue
            notifications.append({
                'type': 'upcoming_session',
                'priority': 'high',
                'title': 'Session Today',
                'message': f'{session.title} at {session.start_time}',
                'data': {'session_id': session.id, 'group_id': session.group_id},
                'created_at': session.scheduled_start
            })

        reminder_days = current_app.config.get('EVALUATION_REMINDER_DAYS', 3)
        completed = (
            db.session.query(Session)
            .filter(Session.trainer_id == trainer_id,
                    Session.status == SessionStatus.COMPLETED,
                    Session.actual_end_time >= now - timedelta(days=reminder_days))
            .order_by(Session.actual_end_time.desc())
            .all()
        )
        for session in completed:
            if session.evaluations:
                continue
            notifications.append({
                'type': 'evaluation_pending',
                'priority': 'medium',
                'title': 'Evaluation Pending',
                'message': f'Please evaluate: {session.title}',
                'data': {'session_id': session.id},
                'created_at': session.actual_end_time
            })

        for alert in StatsService.low_attendance_alerts(trainer_id):
            notifications.append({
                'type': 'low_attendance',
                'priority': 'medium',
                'title': 'Low Attendance Alert',
                'message': alert['message'],
                'data': {'group_id': alert['group_id']},
                'created_at': now
            })

        # Stable sorts: newest first, then by priority
        notifications.sort(key=lambda item: item['created_at'], reverse=True)
        notifications.sort(key=lambda item: PRIORITY_ORDER[item['priority']])

        for item in notifications:
            item['created_at'] = item['created_at'].isoformat()
        return notifications
