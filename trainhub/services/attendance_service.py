# services/attendance_service.py
"""
Attendance ledger.
Records per-session, per-student attendance as idempotent upserts keyed by
(course, date, student) and computes student, session and overview summaries.
"""

import logging
from typing import NamedTuple

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from trainhub.extensions import db
from trainhub.models import (
    AttendanceRecord, AttendanceStatus, StudentAttendance, Enrollment, EnrollmentStatus, Course,
    Session, SessionStatus, group_students
)
from trainhub.services.errors import ValidationError
from trainhub.services.group_service import GroupService
from trainhub.services.session_service import SessionService
from trainhub.utils.time_utils import get_now, parse_date, percentage

# Statuses counted as attended by each summary. The per-student figure credits
# excused absences; the per-session rate only counts students who showed up.
STUDENT_ATTENDED_STATUSES = (AttendanceStatus.PRESENT, AttendanceStatus.LATE, AttendanceStatus.EXCUSED)
SESSION_ATTENDED_STATUSES = (AttendanceStatus.PRESENT, AttendanceStatus.LATE)

# A student without an entry on a sheet is counted with this status
MISSING_ENTRY_STATUS = AttendanceStatus.ABSENT

NOTES_MAX_LENGTH = 500


class ScopeKey(NamedTuple):
    """Identity attendance is grouped under: one sheet per course per calendar date."""
    course_id: str
    session_date: object

    @classmethod
    def for_session(cls, session):
        if not session.course_id or not session.scheduled_date:
            raise ValidationError('Session has no course or scheduled date to record attendance against')
        return cls(session.course_id, session.scheduled_date)


def _empty_counts():
    return {status: 0 for status in AttendanceStatus.ALL}


class AttendanceService:
    """Service class for attendance recording and reporting."""

    @staticmethod
    def get_record(scope_key):
        return (
            db.session.query(AttendanceRecord)
            .filter_by(course_id=scope_key.course_id, session_date=scope_key.session_date)
            .first()
        )

    @staticmethod
    def _get_or_create_record(scope_key, session_info=None):
        """Return the sheet for a scope, creating it on first mark."""
        record = AttendanceService.get_record(scope_key)
        if record is not None:
            return record

        info = session_info or {}
        record = AttendanceRecord(
            course_id=scope_key.course_id,
            session_date=scope_key.session_date,
            session_id=info.get('session_id'),
            title=info.get('title') or 'Attendance',
            start_time=info.get('start_time'),
            end_time=info.get('end_time'),
            location=info.get('location')
        )
        try:
            # Savepoint so a concurrent insert of the same scope only loses this row
            with db.session.begin_nested():
                db.session.add(record)
        except IntegrityError:
            logging.getLogger('attendance_service').info(
                f"Attendance sheet for {scope_key} created concurrently, reusing it")
            record = AttendanceService.get_record(scope_key)
        return record

    @staticmethod
    def mark_attendance(scope_key, student_id, status, marked_by, notes=None, now=None,
                        session_info=None, commit=True):
        """
        Upsert one student's attendance on the sheet for `scope_key`.

        An existing entry has its status, marker, mark time and notes overwritten;
        otherwise one is appended. check_in_time is stamped for present/late and
        cleared for any other status.

        Returns:
            StudentAttendance: The created or updated entry
        """
        logger = logging.getLogger('attendance_service')

        if status not in AttendanceStatus.ALL:
            raise ValidationError(f"Invalid attendance status: {status}. "
                                  f"Use one of: {', '.join(AttendanceStatus.ALL)}", field='status')
        if not student_id:
            raise ValidationError('student_id is required', field='student_id')
        if notes is not None and not isinstance(notes, str):
            raise ValidationError('Notes must be a string', field='notes')
        if notes is not None and len(notes) > NOTES_MAX_LENGTH:
            raise ValidationError(f'Notes cannot exceed {NOTES_MAX_LENGTH} characters', field='notes')

        now = now or get_now()
        check_in_time = now if status in AttendanceStatus.CHECKED_IN else None

        try:
            record = AttendanceService._get_or_create_record(scope_key, session_info)
            entry = record.get_entry(student_id)

            if entry is not None:
                entry.status = status
                entry.marked_by = marked_by
                entry.marked_at = now
                entry.notes = notes
                entry.check_in_time = check_in_time
            else:
                entry = StudentAttendance(
                    student_id=student_id,
                    status=status,
                    marked_by=marked_by,
                    marked_at=now,
                    notes=notes,
                    check_in_time=check_in_time
                )
                record.entries.append(entry)

            if commit:
                db.session.commit()

        except IntegrityError:
            db.session.rollback()
            logger.error(f"Integrity error marking {student_id} on {scope_key}", exc_info=True)
            raise

        logger.info(f"Attendance marked: student {student_id} {status} on "
                    f"{scope_key.course_id}/{scope_key.session_date} by {marked_by}")
        return entry

    @staticmethod
    def resolve_scope(trainer_id, session_id=None, group_id=None, date=None):
        """
        Work out the scope and sheet metadata for an attendance submission.

        Returns:
            tuple: (ScopeKey, session_info dict, roster student IDs)
        """
        if session_id:
            session = SessionService.get_session(session_id, trainer_id)
            info = {
                'session_id': session.id,
                'title': session.title,
                'start_time': session.start_time,
                'end_time': session.end_time,
                'location': session.location
            }
            return ScopeKey.for_session(session), info, GroupService.roster_ids(session.group)

        if group_id:
            group = GroupService.get_group(group_id, trainer_id)
            day = parse_date(date, 'date') if date else get_now().date()
            info = {'title': f'{group.name} - Attendance'}
            return ScopeKey(group.course_id, day), info, GroupService.roster_ids(group)

        raise ValidationError('Either session_id or group_id is required', field='session_id')

    @staticmethod
    def save_attendance(trainer_id, marked_by, records, session_id=None, group_id=None, date=None, now=None):
        """
        Mark a batch of students in one transaction.

        Args:
            trainer_id: Owner to enforce (None skips the ownership check)
            marked_by: User ID recorded on each entry
            records: list of {'student_id', 'status', 'notes'?}

        Returns:
            dict: the sheet plus its session summary
        """
        if not records or not isinstance(records, list):
            raise ValidationError('Attendance records are required', field='records')

        # Reject the whole batch before touching the sheet
        for index, item in enumerate(records):
            if not isinstance(item, dict):
                raise ValidationError(f'records[{index}] must be an object', field='records')
            if not item.get('student_id'):
                raise ValidationError(f'records[{index}].student_id is required', field='records')
            if item.get('status') not in AttendanceStatus.ALL:
                raise ValidationError(f"records[{index}] has invalid status: {item.get('status')}",
                                      field='records')
            notes = item.get('notes')
            if notes is not None and not isinstance(notes, str):
                raise ValidationError(f'records[{index}].notes must be a string', field='records')
            if notes is not None and len(notes) > NOTES_MAX_LENGTH:
                raise ValidationError(f'records[{index}].notes cannot exceed {NOTES_MAX_LENGTH} characters',
                                      field='records')

        scope_key, info, roster = AttendanceService.resolve_scope(trainer_id, session_id, group_id, date)
        now = now or get_now()

        try:
            for item in records:
                AttendanceService.mark_attendance(
                    scope_key,
                    item.get('student_id'),
                    item.get('status'),
                    marked_by,
                    notes=item.get('notes'),
                    now=now,
                    session_info=info,
                    commit=False
                )
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        record = AttendanceService.get_record(scope_key)
        return {
            'record': record.to_dict(),
            'summary': AttendanceService.session_summary(scope_key, roster=roster)
        }

    # ===============================
    # SUMMARIES
    # ===============================

    @staticmethod
    def student_sheets(course_id, student_id):
        """
        Sheets of a course that apply to one student: those dated on a
        non-cancelled session of a group the student belongs to, plus any
        sheet that already carries an entry for the student.
        """
        roster_dates = (
            select(Session.scheduled_date)
            .join(group_students, group_students.c.group_id == Session.group_id)
            .where(Session.course_id == course_id,
                   group_students.c.student_id == student_id,
                   Session.status != SessionStatus.CANCELLED,
                   Session.scheduled_date.isnot(None))
        )
        marked_sheets = select(StudentAttendance.record_id).where(StudentAttendance.student_id == student_id)

        return (
            db.session.query(AttendanceRecord)
            .filter(AttendanceRecord.course_id == course_id,
                    or_(AttendanceRecord.session_date.in_(roster_dates),
                        AttendanceRecord.id.in_(marked_sheets)))
            .order_by(AttendanceRecord.session_date)
            .all()
        )

    @staticmethod
    def student_summary(course_id, student_id):
        """
        Attendance totals for one student across the course sheets that apply to them.

        A sheet from one of the student's sessions without an entry for them counts as absent.
        percentage = present + late + excused over total sessions.
        """
        sheets = AttendanceService.student_sheets(course_id, student_id)

        counts = _empty_counts()
        for sheet in sheets:
            entry = sheet.get_entry(student_id)
            counts[entry.status if entry else MISSING_ENTRY_STATUS] += 1

        total = len(sheets)
        attended = sum(counts[status] for status in STUDENT_ATTENDED_STATUSES)
        return {
            'course_id': course_id,
            'student_id': student_id,
            'total_sessions': total,
            'present': counts[AttendanceStatus.PRESENT],
            'absent': counts[AttendanceStatus.ABSENT],
            'late': counts[AttendanceStatus.LATE],
            'excused': counts[AttendanceStatus.EXCUSED],
            'percentage': percentage(attended, total)
        }

    @staticmethod
    def summarize_entries(entries, roster=None):
        """
        Session summary over a sheet's entries; roster students without an entry count as absent.
        attendance_rate = present + late over total students.
        """
        counts = _empty_counts()
        seen = set()
        for entry in entries:
            counts[entry.status] += 1
            seen.add(entry.student_id)
        for student_id in roster or ():
            if student_id not in seen:
                counts[MISSING_ENTRY_STATUS] += 1
                seen.add(student_id)

        total = len(seen)
        attended = sum(counts[status] for status in SESSION_ATTENDED_STATUSES)
        return {
            'total_students': total,
            'present': counts[AttendanceStatus.PRESENT],
            'absent': counts[AttendanceStatus.ABSENT],
            'late': counts[AttendanceStatus.LATE],
            'excused': counts[AttendanceStatus.EXCUSED],
            'attendance_rate': percentage(attended, total)
        }

    @staticmethod
    def session_summary(scope_key, roster=None):
        record = AttendanceService.get_record(scope_key)
        summary = AttendanceService.summarize_entries(record.entries if record else [], roster)
        summary['has_record'] = record is not None
        return summary

    @staticmethod
    def get_session_attendance(session_id, trainer_id=None):
        """Sheet and summary for a session, or an empty summary when nothing is recorded."""
        session = SessionService.get_session(session_id, trainer_id)
        scope_key = ScopeKey.for_session(session)
        record = AttendanceService.get_record(scope_key)
        return {
            'session_id': session.id,
            'record': record.to_dict() if record else None,
            'summary': AttendanceService.session_summary(scope_key, roster=GroupService.roster_ids(session.group))
        }

    @staticmethod
    def student_overview(student_id):
        """
        Per-course summaries for every active or completed enrollment of a student.

        Returns:
            dict: courses list and overall_stats
        """
        enrollments = (
            db.session.query(Enrollment)
            .filter(Enrollment.student_id == student_id,
                    Enrollment.status.in_([EnrollmentStatus.ACTIVE, EnrollmentStatus.COMPLETED]))
            .all()
        )

        courses = []
        for enrollment in enrollments:
            summary = AttendanceService.student_summary(enrollment.course_id, student_id)
            course = db.session.get(Course, enrollment.course_id)
            summary['course_title'] = course.title if course else None
            courses.append(summary)

        overall = {
            'total_courses': len(courses),
            'average_attendance': percentage(sum(c['percentage'] for c in courses), 100 * len(courses)),
            'total_sessions': sum(c['total_sessions'] for c in courses),
            'total_present': sum(c['present'] for c in courses),
            'total_absent': sum(c['absent'] for c in courses),
            'total_late': sum(c['late'] for c in courses),
            'total_excused': sum(c['excused'] for c in courses)
        }
        return {'student_id': student_id, 'courses': courses, 'overall_stats': overall}

