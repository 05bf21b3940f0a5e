"""Tests for attendance marking and summaries."""

from datetime import date, datetime

import pytest

from trainhub.models import AttendanceRecord, StudentAttendance, EnrollmentStatus, RoleType
from trainhub.services.attendance_service import (
    AttendanceService, ScopeKey, STUDENT_ATTENDED_STATUSES, SESSION_ATTENDED_STATUSES
)
from trainhub.services.errors import ValidationError, NotFound
from trainhub.services.session_service import SessionService


def manual_session(trainer, group, day, title='Lesson'):
    return SessionService.create_session(trainer.id, {
        'title': title,
        'group_id': group.id,
        'scheduled_date': day.isoformat(),
        'start_time': '10:00',
        'end_time': '12:00',
    }, now=datetime(2024, 1, 9, 9, 0))


# ─── MARKING ──────────────────────────────────────────────────────────────────

class TestMarkAttendance:
    @pytest.fixture
    def scope(self, course):
        return ScopeKey(course.id, date(2024, 1, 9))

    def test_first_mark_creates_sheet(self, db, trainer, students, scope):
        now = datetime(2024, 1, 9, 10, 5)
        entry = AttendanceService.mark_attendance(scope, students[0].id, 'present', trainer.id, now=now)

        record = db.session.query(AttendanceRecord).one()
        assert (record.course_id, record.session_date) == (scope.course_id, scope.session_date)
        assert entry.record_id == record.id
        assert entry.marked_by == trainer.id
        assert entry.marked_at == now
        assert entry.check_in_time == now

    def test_absent_and_excused_have_no_check_in(self, trainer, students, scope):
        absent = AttendanceService.mark_attendance(scope, students[0].id, 'absent', trainer.id)
        excused = AttendanceService.mark_attendance(scope, students[1].id, 'excused', trainer.id)
        assert absent.check_in_time is None
        assert excused.check_in_time is None

    def test_marking_twice_updates_in_place(self, db, trainer, make_user, students, scope):
        """Re-marking overwrites status, marker, time and notes on the single entry."""
        other = make_user(RoleType.TRAINER)
        AttendanceService.mark_attendance(scope, students[0].id, 'present', trainer.id,
                                          notes='on time', now=datetime(2024, 1, 9, 10, 0))
        entry = AttendanceService.mark_attendance(scope, students[0].id, 'absent', other.id,
                                                  now=datetime(2024, 1, 9, 11, 0))

        assert db.session.query(StudentAttendance).count() == 1
        assert db.session.query(AttendanceRecord).count() == 1
        assert entry.status == 'absent'
        assert entry.marked_by == other.id
        assert entry.marked_at == datetime(2024, 1, 9, 11, 0)
        assert entry.notes is None
        assert entry.check_in_time is None

    def test_identical_marks_are_idempotent(self, db, trainer, students, scope):
        now = datetime(2024, 1, 9, 10, 0)
        for _ in range(3):
            AttendanceService.mark_attendance(scope, students[0].id, 'late', trainer.id, now=now)

        entries = db.session.query(StudentAttendance).all()
        assert len(entries) == 1
        assert entries[0].status == 'late'

    def test_rejects_unknown_status(self, trainer, students, scope):
        with pytest.raises(ValidationError) as exc:
            AttendanceService.mark_attendance(scope, students[0].id, 'sick', trainer.id)
        assert exc.value.field == 'status'

    def test_scope_of_session_without_date(self):
        class Unscheduled:
            course_id = 'course-1'
            scheduled_date = None

        with pytest.raises(ValidationError):
            ScopeKey.for_session(Unscheduled())


# ─── BULK SAVE ────────────────────────────────────────────────────────────────

class TestSaveAttendance:
    @pytest.fixture
    def group(self, trainer, students, make_group):
        return make_group(trainer, students=students)

    def test_save_for_session(self, trainer, students, group):
        session = manual_session(trainer, group, date(2024, 1, 9))
        records = [
            {'student_id': students[0].id, 'status': 'present'},
            {'student_id': students[1].id, 'status': 'late', 'notes': 'bus'},
            {'student_id': students[2].id, 'status': 'excused'},
        ]

        result = AttendanceService.save_attendance(trainer.id, trainer.id, records, session_id=session.id)

        assert result['record']['session_id'] == session.id
        assert len(result['record']['entries']) == 3
        summary = result['summary']
        assert summary['total_students'] == 4
        assert (summary['present'], summary['late'], summary['excused'], summary['absent']) == (1, 1, 1, 1)
        assert summary['attendance_rate'] == 50

    def test_save_for_group_and_date(self, db, trainer, students, group):
        records = [{'student_id': student.id, 'status': 'present'} for student in students]

        result = AttendanceService.save_attendance(trainer.id, trainer.id, records,
                                                   group_id=group.id, date='2024-01-12')

        record = db.session.query(AttendanceRecord).one()
        assert record.course_id == group.course_id
        assert record.session_date == date(2024, 1, 12)
        assert result['summary']['attendance_rate'] == 100

    def test_invalid_entry_rejects_whole_batch(self, db, trainer, students, group):
        session = manual_session(trainer, group, date(2024, 1, 9))
        records = [
            {'student_id': students[0].id, 'status': 'present'},
            {'student_id': students[1].id, 'status': 'unknown'},
        ]

        with pytest.raises(ValidationError):
            AttendanceService.save_attendance(trainer.id, trainer.id, records, session_id=session.id)

        assert db.session.query(AttendanceRecord).count() == 0
        assert db.session.query(StudentAttendance).count() == 0

    def test_non_string_notes_rejects_batch(self, db, trainer, students, group):
        session = manual_session(trainer, group, date(2024, 1, 9))
        records = [
            {'student_id': students[0].id, 'status': 'present'},
            {'student_id': students[1].id, 'status': 'late', 'notes': 42},
        ]

        with pytest.raises(ValidationError) as exc:
            AttendanceService.save_attendance(trainer.id, trainer.id, records, session_id=session.id)

        assert exc.value.field == 'records'
        assert db.session.query(StudentAttendance).count() == 0

    def test_requires_records(self, trainer, group):
        with pytest.raises(ValidationError) as exc:
            AttendanceService.save_attendance(trainer.id, trainer.id, [], group_id=group.id)
        assert exc.value.field == 'records'

    def test_requires_scope(self, trainer, students):
        with pytest.raises(ValidationError):
            AttendanceService.save_attendance(trainer.id, trainer.id,
                                              [{'student_id': students[0].id, 'status': 'present'}])

    def test_other_trainers_session_not_found(self, make_user, trainer, students, group):
        session = manual_session(trainer, group, date(2024, 1, 9))
        other = make_user(RoleType.TRAINER)

        with pytest.raises(NotFound):
            AttendanceService.save_attendance(other.id, other.id,
                                              [{'student_id': students[0].id, 'status': 'present'}],
                                              session_id=session.id)


# ─── SUMMARIES ────────────────────────────────────────────────────────────────

class TestSummaries:
    def test_policies_differ_on_excused(self):
        assert 'excused' in STUDENT_ATTENDED_STATUSES
        assert 'excused' not in SESSION_ATTENDED_STATUSES

    def test_student_summary_counts_missing_as_absent(self, trainer, students, make_group):
        student = students[0]
        group = make_group(trainer, students=students[:2])
        monday = manual_session(trainer, group, date(2024, 1, 8))
        tuesday = manual_session(trainer, group, date(2024, 1, 9))
        wednesday = manual_session(trainer, group, date(2024, 1, 10))
        AttendanceService.mark_attendance(ScopeKey.for_session(monday), student.id, 'present', trainer.id)
        AttendanceService.mark_attendance(ScopeKey.for_session(tuesday), student.id, 'excused', trainer.id)
        # Sheet exists, but only for another student of the same group
        AttendanceService.mark_attendance(ScopeKey.for_session(wednesday), students[1].id, 'present', trainer.id)

        summary = AttendanceService.student_summary(group.course_id, student.id)

        assert summary['total_sessions'] == 3
        assert (summary['present'], summary['excused'], summary['absent'], summary['late']) == (1, 1, 1, 0)
        # (1 present + 1 excused) / 3 = 66.67
        assert summary['percentage'] == 67

    def test_student_summary_ignores_other_groups_of_the_course(self, trainer, students, course, make_group):
        """Another group's meeting dates are not absences for a student outside it."""
        first = make_group(trainer, course=course, students=[students[0]], name='Wednesday Group')
        second = make_group(trainer, course=course, students=[students[1]], name='Thursday Group')
        wednesday = manual_session(trainer, first, date(2024, 1, 10))
        thursday = manual_session(trainer, second, date(2024, 1, 11))
        AttendanceService.mark_attendance(ScopeKey.for_session(wednesday), students[0].id, 'present', trainer.id)
        AttendanceService.mark_attendance(ScopeKey.for_session(thursday), students[1].id, 'present', trainer.id)

        summary = AttendanceService.student_summary(course.id, students[0].id)

        assert summary['total_sessions'] == 1
        assert summary['absent'] == 0
        assert summary['percentage'] == 100

    def test_student_summary_skips_cancelled_sessions(self, trainer, students, make_group):
        group = make_group(trainer, students=students[:2])
        held = manual_session(trainer, group, date(2024, 1, 8))
        cancelled = manual_session(trainer, group, date(2024, 1, 9))
        AttendanceService.mark_attendance(ScopeKey.for_session(held), students[0].id, 'late', trainer.id)
        AttendanceService.mark_attendance(ScopeKey.for_session(cancelled), students[1].id, 'present', trainer.id)
        SessionService.cancel_session(cancelled)

        summary = AttendanceService.student_summary(group.course_id, students[0].id)

        assert summary['total_sessions'] == 1
        assert summary['late'] == 1

    def test_student_summary_without_records(self, students, course):
        summary = AttendanceService.student_summary(course.id, students[0].id)
        assert summary['total_sessions'] == 0
        assert summary['percentage'] == 0

    def test_session_summary_rounds_half_up(self, trainer, students, course, make_user):
        scope = ScopeKey(course.id, date(2024, 1, 9))
        for student, status in zip(students, ['present', 'present', 'present', 'absent']):
            AttendanceService.mark_attendance(scope, student.id, status, trainer.id)
        extra = [make_user(RoleType.STUDENT) for _ in range(4)]
        for student in extra:
            AttendanceService.mark_attendance(scope, student.id, 'excused', trainer.id)

        summary = AttendanceService.session_summary(scope)

        # 3 of 8 is 37.5%
        assert summary['total_students'] == 8
        assert summary['attendance_rate'] == 38

    def test_session_summary_adds_roster_without_entries(self, trainer, students, course):
        scope = ScopeKey(course.id, date(2024, 1, 9))
        AttendanceService.mark_attendance(scope, students[0].id, 'late', trainer.id)

        roster = [student.id for student in students]
        summary = AttendanceService.session_summary(scope, roster=roster)

        assert summary['total_students'] == 4
        assert summary['absent'] == 3
        assert summary['attendance_rate'] == 25
        assert summary['has_record'] is True

    def test_session_summary_without_record(self, course):
        summary = AttendanceService.session_summary(ScopeKey(course.id, date(2024, 1, 9)))
        assert summary['total_students'] == 0
        assert summary['attendance_rate'] == 0
        assert summary['has_record'] is False

    def test_get_session_attendance_before_marking(self, trainer, students, make_group):
        group = make_group(trainer, students=students)
        session = manual_session(trainer, group, date(2024, 1, 9))

        data = AttendanceService.get_session_attendance(session.id, trainer.id)

        assert data['record'] is None
        assert data['summary']['total_students'] == 4
        assert data['summary']['absent'] == 4

    def test_student_overview(self, trainer, students, make_course, enroll):
        student = students[0]
        python = make_course('Python')
        design = make_course('Design')
        dropped = make_course('Dropped')
        enroll(python, student)
        enroll(design, student, EnrollmentStatus.COMPLETED)
        enroll(dropped, student, EnrollmentStatus.DROPPED)

        AttendanceService.mark_attendance(ScopeKey(python.id, date(2024, 1, 8)), student.id, 'present', trainer.id)
        AttendanceService.mark_attendance(ScopeKey(design.id, date(2024, 1, 8)), student.id, 'absent', trainer.id)
        AttendanceService.mark_attendance(ScopeKey(design.id, date(2024, 1, 9)), student.id, 'late', trainer.id)

        overview = AttendanceService.student_overview(student.id)

        titles = sorted(course['course_title'] for course in overview['courses'])
        assert titles == ['Design', 'Python']
        overall = overview['overall_stats']
        assert overall['total_courses'] == 2
        assert overall['total_sessions'] == 3
        # Python 100%, Design 50%
        assert overall['average_attendance'] == 75
