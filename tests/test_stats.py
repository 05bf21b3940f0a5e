"""Tests for group, trainer, course and alert rollups."""

from datetime import date, datetime

import pytest

from trainhub.models import EnrollmentStatus, GroupStatus, RoleType, SessionEvaluation
from trainhub.services.attendance_service import AttendanceService, ScopeKey
from trainhub.services.session_service import SessionService
from trainhub.services.stats_service import (
    StatsService, LOW_ATTENDANCE_THRESHOLD, EXCLUDE_EMPTY_SESSIONS, NO_DATA_SCORE
)


def manual_session(trainer, group, day, start='10:00', end='12:00', title='Lesson'):
    return SessionService.create_session(trainer.id, {
        'title': title,
        'group_id': group.id,
        'scheduled_date': day.isoformat(),
        'start_time': start,
        'end_time': end,
    }, now=datetime(2024, 1, 9, 9, 0))


def mark(session, statuses, marked_by):
    """Mark (student, status) pairs on the session's sheet."""
    scope = ScopeKey.for_session(session)
    for student, status in statuses:
        AttendanceService.mark_attendance(scope, student.id, status, marked_by)


def group_with_rate(trainer, make_group, students, present, day=date(2024, 1, 8), name='Group'):
    """Group of four whose single session has `present` students present, the rest absent."""
    group = make_group(trainer, students=students, name=name)
    session = manual_session(trainer, group, day)
    mark(session, [(student, 'present' if i < present else 'absent') for i, student in enumerate(students)],
         trainer.id)
    return group


# ─── POLICY ───────────────────────────────────────────────────────────────────

class TestPolicyConstants:
    def test_defaults(self):
        assert LOW_ATTENDANCE_THRESHOLD == 70
        assert EXCLUDE_EMPTY_SESSIONS is True
        assert NO_DATA_SCORE == 0


# ─── GROUP AVERAGE ────────────────────────────────────────────────────────────

class TestGroupAttendance:
    def test_no_data_is_none(self, trainer, students, make_group):
        group = make_group(trainer, students=students)
        manual_session(trainer, group, date(2024, 1, 8))
        assert StatsService.group_attendance(group) is None

    def test_excludes_empty_and_cancelled_sessions(self, trainer, students, make_group):
        """Average over sessions with entries; empty sheets and cancelled sessions do not count as zero."""
        group = make_group(trainer, students=students)
        full = manual_session(trainer, group, date(2024, 1, 8))
        half = manual_session(trainer, group, date(2024, 1, 9))
        manual_session(trainer, group, date(2024, 1, 10))
        cancelled = manual_session(trainer, group, date(2024, 1, 11))

        mark(full, [(student, 'present') for student in students], trainer.id)
        # Only two marked; the rest of the roster counts as absent
        mark(half, [(students[0], 'present'), (students[1], 'late')], trainer.id)
        mark(cancelled, [(students[0], 'absent')], trainer.id)
        SessionService.cancel_session(cancelled)

        assert StatsService.group_attendance(group) == 75

    def test_excused_does_not_count_as_attended(self, trainer, students, make_group):
        group = make_group(trainer, students=students)
        session = manual_session(trainer, group, date(2024, 1, 8))
        mark(session, [(students[0], 'present'), (students[1], 'excused')], trainer.id)

        assert StatsService.group_attendance(group) == 25

    def test_refresh_group_stats_stores_average(self, trainer, students, make_group):
        group = group_with_rate(trainer, make_group, students, present=3)
        assert StatsService.refresh_group_stats(group) == 75
        assert group.average_attendance == 75

    def test_refresh_without_data_stores_zero(self, trainer, make_group):
        group = make_group(trainer)
        assert StatsService.refresh_group_stats(group) == 0

    def test_group_stats(self, trainer, students, make_group):
        group = group_with_rate(trainer, make_group, students, present=2)
        stats = StatsService.group_stats(group)

        assert stats['average_attendance'] == 50
        assert stats['has_data'] is True
        assert stats['total_sessions'] == 1
        assert stats['enrolled_count'] == 4


# ─── TRAINER RANKING ──────────────────────────────────────────────────────────

class TestTrainerRanking:
    @pytest.fixture
    def trainers(self, make_user, make_group, students, db):
        alice = make_user(RoleType.TRAINER, name='Alice')
        bob = make_user(RoleType.TRAINER, name='Bob')
        carol = make_user(RoleType.TRAINER, name='Carol')
        dan = make_user(RoleType.TRAINER, name='Dan')

        group_with_rate(alice, make_group, students, present=4)

        group_with_rate(bob, make_group, students, present=2)
        make_group(bob, students=students, name='Bob without data')

        finished = group_with_rate(dan, make_group, students, present=4)
        finished.status = GroupStatus.COMPLETED
        db.session.commit()

        return alice, bob, carol, dan

    def test_mean_of_group_averages(self, trainers):
        """Bob has 50% in one group and no data in the other: (50 + 0) / 2."""
        ranking = StatsService.trainer_ranking()

        assert [item['trainer_name'] for item in ranking] == ['Alice', 'Bob', 'Carol', 'Dan']
        assert [item['average_attendance'] for item in ranking] == [100, 25, 0, 0]

    def test_only_active_groups_count(self, trainers):
        ranking = {item['trainer_name']: item for item in StatsService.trainer_ranking()}
        assert ranking['Dan']['total_groups'] == 0
        assert ranking['Bob']['total_groups'] == 2
        assert ranking['Carol']['total_groups'] == 0

    def test_limit(self, trainers):
        ranking = StatsService.trainer_ranking(limit=2)
        assert [item['trainer_name'] for item in ranking] == ['Alice', 'Bob']


# ─── COURSES ──────────────────────────────────────────────────────────────────

class TestCoursePopularity:
    def test_counts_and_completion_rate(self, make_course, make_user, enroll):
        popular = make_course('Popular')
        niche = make_course('Niche')
        make_course('Empty')
        learners = [make_user(RoleType.STUDENT) for _ in range(3)]

        enroll(popular, learners[0], EnrollmentStatus.COMPLETED)
        enroll(popular, learners[1])
        enroll(popular, learners[2], EnrollmentStatus.DROPPED)
        enroll(niche, learners[0], EnrollmentStatus.COMPLETED)

        results = StatsService.course_popularity()

        assert [item['title'] for item in results] == ['Popular', 'Niche', 'Empty']
        assert results[0]['total_enrollments'] == 3
        assert results[0]['active_enrollments'] == 1
        assert results[0]['completion_rate'] == 33.3
        assert results[1]['completion_rate'] == 100.0
        assert results[2]['completion_rate'] == 0.0


# ─── ALERTS ───────────────────────────────────────────────────────────────────

class TestLowAttendanceAlerts:
    def test_only_groups_between_zero_and_threshold(self, trainer, students, make_group):
        group_with_rate(trainer, make_group, students, present=2, name='Low')
        group_with_rate(trainer, make_group, students, present=3, name='Fine')
        group_with_rate(trainer, make_group, students, present=0, name='Zero')
        make_group(trainer, students=students, name='No data')

        alerts = StatsService.low_attendance_alerts()

        assert [alert['group_name'] for alert in alerts] == ['Low']
        assert alerts[0]['average_attendance'] == 50
        assert alerts[0]['threshold'] == 70

    def test_threshold_is_configurable(self, app, trainer, students, make_group):
        app.config['LOW_ATTENDANCE_THRESHOLD'] = 80
        group_with_rate(trainer, make_group, students, present=3, name='Fine')

        assert [alert['group_name'] for alert in StatsService.low_attendance_alerts()] == ['Fine']

    def test_filtered_by_trainer(self, trainer, make_user, students, make_group):
        other = make_user(RoleType.TRAINER)
        group_with_rate(other, make_group, students, present=1)

        assert StatsService.low_attendance_alerts(trainer.id) == []
        assert len(StatsService.low_attendance_alerts(other.id)) == 1


# ─── DASHBOARD & TRENDS ───────────────────────────────────────────────────────

class TestDashboardAndTrends:
    def test_flat_rates(self, trainer, students, make_group, enroll, clock):
        group = make_group(trainer, students=students)
        monday = manual_session(trainer, group, date(2024, 1, 8))
        tuesday = manual_session(trainer, group, date(2024, 1, 9))
        mark(monday, [(students[0], 'present'), (students[1], 'present'), (students[2], 'late')], trainer.id)
        mark(tuesday, [(students[0], 'present'), (students[1], 'absent'), (students[2], 'absent')], trainer.id)
        enroll(group.course, students[0], EnrollmentStatus.COMPLETED)
        enroll(group.course, students[1])
        enroll(group.course, students[2])

        overview = StatsService.dashboard_overview(now=clock())

        assert overview['trainers']['total'] == 1
        assert overview['groups'] == {'total': 1, 'active': 1, 'inactive': 0}
        assert overview['students']['total'] == 4
        assert overview['enrollments']['total'] == 3
        # 4 of 6 entries present or late
        assert overview['performance']['attendance_rate'] == 66.7
        assert overview['performance']['completion_rate'] == 33.3

    def test_empty_dashboard(self, db, clock):
        overview = StatsService.dashboard_overview(now=clock())
        assert overview['performance'] == {'attendance_rate': 0.0, 'completion_rate': 0.0}

    def test_trends_per_date(self, trainer, students, course, clock):
        AttendanceService.mark_attendance(ScopeKey(course.id, date(2024, 1, 8)), students[0].id, 'present', trainer.id)
        AttendanceService.mark_attendance(ScopeKey(course.id, date(2024, 1, 8)), students[1].id, 'late', trainer.id)
        AttendanceService.mark_attendance(ScopeKey(course.id, date(2024, 1, 9)), students[0].id, 'absent', trainer.id)
        # Outside the window
        AttendanceService.mark_attendance(ScopeKey(course.id, date(2023, 11, 1)), students[0].id, 'present',
                                          trainer.id)

        trends = StatsService.attendance_trends(days=7, now=clock())

        assert [row['date'] for row in trends] == ['2024-01-08', '2024-01-09']
        assert trends[0]['present'] == 1
        assert trends[0]['late'] == 1
        assert trends[0]['total'] == 2
        assert trends[1]['absent'] == 1


# ─── NOTIFICATIONS ────────────────────────────────────────────────────────────

class TestTrainerNotifications:
    def test_priorities_and_order(self, db, trainer, students, make_group, clock):
        group = make_group(trainer, students=students)

        old = manual_session(trainer, group, date(2024, 1, 1), title='Old lesson')
        SessionService.start_session(old, datetime(2024, 1, 1, 10, 0))
        SessionService.end_session(old, datetime(2024, 1, 1, 12, 0))

        yesterday = manual_session(trainer, group, date(2024, 1, 8), title='Yesterday lesson')
        SessionService.start_session(yesterday, datetime(2024, 1, 8, 10, 0))
        SessionService.end_session(yesterday, datetime(2024, 1, 8, 12, 0))
        mark(yesterday, [(students[0], 'present')], trainer.id)

        evaluated = manual_session(trainer, group, date(2024, 1, 7), title='Evaluated lesson')
        SessionService.start_session(evaluated, datetime(2024, 1, 7, 10, 0))
        SessionService.end_session(evaluated, datetime(2024, 1, 7, 12, 0))
        db.session.add(SessionEvaluation(session_id=evaluated.id, trainer_id=trainer.id, rating=5))
        db.session.commit()

        manual_session(trainer, group, date(2024, 1, 9), title='Today lesson')

        notifications = StatsService.trainer_notifications(trainer.id, now=clock())

        assert [item['type'] for item in notifications] == [
            'upcoming_session', 'low_attendance', 'evaluation_pending'
        ]
        assert notifications[0]['priority'] == 'high'
        assert notifications[0]['message'] == 'Today lesson at 10:00'
        assert notifications[2]['message'] == 'Please evaluate: Yesterday lesson'

    def test_started_session_is_not_upcoming(self, trainer, make_group, clock):
        group = make_group(trainer)
        manual_session(trainer, group, date(2024, 1, 9), start='08:00', end='09:30')

        assert StatsService.trainer_notifications(trainer.id, now=clock()) == []
