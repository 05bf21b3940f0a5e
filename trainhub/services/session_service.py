# services/session_service.py
"""
Session lifecycle management.
Creates sessions from a group's weekly pattern, derives their status from the clock,
applies the explicit start/end/cancel transitions, and serves list and calendar views.
"""

import calendar
import logging
from datetime import timedelta

from flask import current_app
from sqlalchemy import case, or_, update

from trainhub.extensions import db
from trainhub.models import AttendanceRecord, Group, Session, SessionStatus
from trainhub.services.errors import ValidationError, NotFound, InvalidTransition, ImmutableRecord
from trainhub.services.group_service import GroupService
from trainhub.services.schedule_resolver import ResolvedSlot, resolve_next_slot
from trainhub.utils.time_utils import (
    get_now, minutes_between, parse_date, validate_time_range, week_start
)

# Explicit transitions; completed and cancelled are terminal
ALLOWED_TRANSITIONS = {
    SessionStatus.SCHEDULED: (SessionStatus.IN_PROGRESS, SessionStatus.CANCELLED),
    SessionStatus.IN_PROGRESS: (SessionStatus.COMPLETED, SessionStatus.CANCELLED),
    SessionStatus.COMPLETED: (),
    SessionStatus.CANCELLED: (),
}

EDITABLE_FIELDS = ('title', 'description', 'lesson_plan')

CALENDAR_VIEWS = ('day', 'week', 'month')

TITLE_MAX_LENGTH = 200
REASON_MAX_LENGTH = 500


class SessionService:
    """Service class for session scheduling and lifecycle operations."""

    # ===============================
    # DERIVED STATUS
    # ===============================

    @staticmethod
    def compute_status(session, now=None):
        """
        Status of a session as seen at `now`. Read-only, never persisted.

        A stored `cancelled` always wins. Otherwise the scheduled window decides:
        before start is `scheduled`, inside [start, end) is `in_progress`, from
        end onwards is `completed`. Sessions without a full schedule keep their
        stored status.
        """
        if session.status == SessionStatus.CANCELLED:
            return SessionStatus.CANCELLED

        start, end = session.scheduled_start, session.scheduled_end
        if start is None or end is None:
            return session.status

        now = now or get_now()
        if now < start:
            return SessionStatus.SCHEDULED
        if now < end:
            return SessionStatus.IN_PROGRESS
        return SessionStatus.COMPLETED

    @staticmethod
    def can_transition(current, target):
        return target in ALLOWED_TRANSITIONS.get(current, ())

    @staticmethod
    def serialize(session, now=None, detail=False):
        """Session dict carrying the derived status and group metadata."""
        data = session.to_dict(status=SessionService.compute_status(session, now))
        group = session.group
        data['group'] = {
            'id': group.id,
            'name': group.name,
            'color': group.color,
            'students_count': group.enrolled_count
        } if group else None

        if detail:
            record = None
            if session.course_id and session.scheduled_date:
                record = (
                    db.session.query(AttendanceRecord)
                    .filter_by(course_id=session.course_id, session_date=session.scheduled_date)
                    .first()
                )
            data['has_attendance'] = record is not None
            data['attendance_id'] = record.id if record else None
            data['has_evaluation'] = len(session.evaluations) > 0
        return data

    # ===============================
    # LOOKUP & CREATION
    # ===============================

    @staticmethod
    def get_session(session_id, trainer_id=None):
        """
        Fetch a session, optionally requiring that it belongs to `trainer_id`.

        Raises:
            NotFound: when missing or owned by another trainer
        """
        session = db.session.get(Session, session_id) if session_id else None
        if session is None or (trainer_id is not None and session.trainer_id != trainer_id):
            raise NotFound('Session not found')
        return session

    @staticmethod
    def _claim_ordinal(group):
        """
        Atomically bump the group's counters and return the new ordinal.

        The UPDATE holds the row lock until the surrounding transaction ends, so
        concurrent creations for one group serialize here.
        """
        db.session.execute(
            update(Group)
            .where(Group.id == group.id)
            .values(sessions_created_count=Group.sessions_created_count + 1,
                    total_sessions=Group.total_sessions + 1)
            .execution_options(synchronize_session=False)
        )
        db.session.refresh(group, attribute_names=['sessions_created_count', 'total_sessions'])
        return group.sessions_created_count

    @staticmethod
    def _manual_slot(data):
        missing = [field for field in ('scheduled_date', 'start_time', 'end_time') if not data.get(field)]
        if missing:
            raise ValidationError(
                'Group has no weekly pattern; scheduled_date, start_time and end_time are required',
                error_code='no_pattern',
                field=missing[0]
            )
        start_time, end_time = validate_time_range(data['start_time'], data['end_time'])
        return ResolvedSlot(parse_date(data['scheduled_date'], 'scheduled_date'), start_time, end_time,
                            (data.get('location') or '').strip() or None)

    @staticmethod
    def _validate_content(data):
        if 'title' in data:
            title = (data.get('title') or '').strip()
            if not title:
                raise ValidationError('Session title is required', field='title')
            if len(title) > TITLE_MAX_LENGTH:
                raise ValidationError(f'Title cannot exceed {TITLE_MAX_LENGTH} characters', field='title')
        if 'lesson_plan' in data and data['lesson_plan'] is not None and not isinstance(data['lesson_plan'], dict):
            raise ValidationError('lesson_plan must be an object', field='lesson_plan')

    @staticmethod
    def create_session(trainer_id, data, now=None):
        """
        Create the next session of a group.

        The date and times come from the group's weekly pattern; groups without
        a pattern need `scheduled_date`, `start_time` and `end_time` in `data`.

        Args:
            trainer_id: Acting trainer's user ID
            data: dict with title, group_id and optional description, lesson_plan
                  (plus the manual schedule fields)
            now: Reference time for slot resolution

        Returns:
            Session: The persisted session
        """
        logger = logging.getLogger('session_service')
        now = now or get_now()

        if not data.get('title') or not data.get('group_id'):
            raise ValidationError('Title and group_id are required',
                                  field='title' if not data.get('title') else 'group_id')
        SessionService._validate_content(data)

        group = GroupService.get_group(data['group_id'], trainer_id)

        manual_slot = None
        if not group.schedule:
            manual_slot = SessionService._manual_slot(data)

        try:
            ordinal = SessionService._claim_ordinal(group)
            slot = resolve_next_slot(group.schedule, ordinal - 1, now) or manual_slot

            session = Session(
                group_id=group.id,
                course_id=group.course_id,
                trainer_id=group.trainer_id,
                title=data['title'].strip(),
                description=data.get('description'),
                ordinal=ordinal,
                scheduled_date=slot.date,
                start_time=slot.start_time,
                end_time=slot.end_time,
                duration=slot.duration_minutes,
                location=slot.location,
                lesson_plan=data.get('lesson_plan') or {},
                status=SessionStatus.SCHEDULED
            )
            db.session.add(session)
            group.update_progress()
            db.session.commit()

        except Exception:
            db.session.rollback()
            logger.error(f"Failed to create session for group {group.id}", exc_info=True)
            raise

        logger.info(f"Session {session.id} #{ordinal} created for group {group.id} "
                    f"on {session.scheduled_date} {session.start_time}-{session.end_time}"
                    f"{' (manual)' if manual_slot else ''}")
        return session

    # ===============================
    # EXPLICIT TRANSITIONS
    # ===============================

    @staticmethod
    def _require_transition(session, target, action):
        if not SessionService.can_transition(session.status, target):
            logging.getLogger('session_service').warning(
                f"Rejected {action} on session {session.id} with status {session.status}"
            )
            raise InvalidTransition(f'Cannot {action} session with status: {session.status}')

    @staticmethod
    def start_session(session, now=None):
        """Mark a scheduled session as in progress and stamp its actual start."""
        SessionService._require_transition(session, SessionStatus.IN_PROGRESS, 'start')

        try:
            session.status = SessionStatus.IN_PROGRESS
            session.actual_start_time = now or get_now()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logging.getLogger('session_service').info(f"Session {session.id} started")
        return session

    @staticmethod
    def end_session(session, now=None):
        """Complete an in-progress session and advance the group's progress."""
        SessionService._require_transition(session, SessionStatus.COMPLETED, 'end')

        try:
            session.status = SessionStatus.COMPLETED
            session.actual_end_time = now or get_now()

            db.session.execute(
                update(Group)
                .where(Group.id == session.group_id)
                .values(completed_sessions=Group.completed_sessions + 1)
                .execution_options(synchronize_session=False)
            )
            group = session.group
            db.session.refresh(group, attribute_names=['completed_sessions', 'total_sessions'])
            group.update_progress()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logging.getLogger('session_service').info(f"Session {session.id} ended")
        return session

    @staticmethod
    def cancel_session(session, reason=None):
        """Cancel a scheduled or in-progress session."""
        SessionService._require_transition(session, SessionStatus.CANCELLED, 'cancel')

        reason = (reason or '').strip() or current_app.config.get(
            'DEFAULT_CANCELLATION_REASON', 'Cancelled by trainer')
        if len(reason) > REASON_MAX_LENGTH:
            raise ValidationError(f'Cancellation reason cannot exceed {REASON_MAX_LENGTH} characters',
                                  field='reason')

        try:
            session.status = SessionStatus.CANCELLED
            session.cancellation_reason = reason
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logging.getLogger('session_service').info(f"Session {session.id} cancelled: {reason}")
        return session

    # ===============================
    # CONTENT EDITS & DELETION
    # ===============================

    @staticmethod
    def _require_mutable(session):
        if session.status == SessionStatus.COMPLETED:
            raise ImmutableRecord('Cannot update completed sessions')

    @staticmethod
    def update_content(session, data):
        """Update title, description and lesson plan; completed sessions are read-only."""
        SessionService._require_mutable(session)

        changes = {field: data[field] for field in EDITABLE_FIELDS if field in data}
        if not changes:
            raise ValidationError(f"No editable fields provided. Allowed: {', '.join(EDITABLE_FIELDS)}")
        SessionService._validate_content(changes)

        if 'title' in changes:
            changes['title'] = changes['title'].strip()
        if 'lesson_plan' in changes and changes['lesson_plan'] is None:
            changes['lesson_plan'] = {}

        session.from_dict(changes)
        db.session.commit()
        return session

    @staticmethod
    def update_lesson_plan(session, plan):
        """Merge keys into the existing lesson plan."""
        SessionService._require_mutable(session)
        if not isinstance(plan, dict):
            raise ValidationError('lesson_plan must be an object', field='lesson_plan')

        merged = dict(session.lesson_plan or {})
        merged.update(plan)
        session.lesson_plan = merged
        db.session.commit()
        return session

    @staticmethod
    def delete_session(session, permanent=False, reason=None):
        """
        Soft delete cancels the session. Hard delete removes it together with its
        evaluations and attendance sheet, and decrements the group's progress counters.

        Returns:
            Session or None: the cancelled session, or None after a hard delete
        """
        if not permanent:
            return SessionService.cancel_session(session, reason)

        logger = logging.getLogger('session_service')
        session_id, group_id = session.id, session.group_id
        was_completed = session.status == SessionStatus.COMPLETED

        try:
            if session.course_id and session.scheduled_date:
                shares_scope = (
                    db.session.query(Session.id)
                    .filter(Session.id != session.id,
                            Session.course_id == session.course_id,
                            Session.scheduled_date == session.scheduled_date)
                    .first()
                )
                if not shares_scope:
                    record = (
                        db.session.query(AttendanceRecord)
                        .filter_by(course_id=session.course_id, session_date=session.scheduled_date)
                        .first()
                    )
                    if record is not None:
                        db.session.delete(record)

            db.session.delete(session)

            values = {'total_sessions': case((Group.total_sessions > 0, Group.total_sessions - 1), else_=0)}
            if was_completed:
                values['completed_sessions'] = case(
                    (Group.completed_sessions > 0, Group.completed_sessions - 1), else_=0)
            db.session.execute(
                update(Group).where(Group.id == group_id).values(**values)
                .execution_options(synchronize_session=False)
            )

            group = db.session.get(Group, group_id)
            if group is not None:
                db.session.refresh(group, attribute_names=['total_sessions', 'completed_sessions'])
                group.update_progress()
            db.session.commit()

        except Exception:
            db.session.rollback()
            logger.error(f"Failed to delete session {session_id}", exc_info=True)
            raise

        logger.info(f"Session {session_id} and related records permanently deleted")
        return None

    # ===============================
    # LISTING & CALENDAR
    # ===============================

    @staticmethod
    def list_sessions(trainer_id=None, group_id=None, status=None, start_date=None, end_date=None,
                      search=None, now=None):
        """
        List sessions ordered by date and start time, each with its derived status.

        The `status` filter applies to the derived status.
        """
        now = now or get_now()
        if status and status not in SessionStatus.ALL:
            raise ValidationError(f"Invalid status: {status}", field='status')

        query = db.session.query(Session)
        if trainer_id is not None:
            query = query.filter(Session.trainer_id == trainer_id)
        if group_id:
            query = query.filter(Session.group_id == group_id)
        if start_date:
            query = query.filter(Session.scheduled_date >= parse_date(start_date, 'start_date'))
        if end_date:
            query = query.filter(Session.scheduled_date <= parse_date(end_date, 'end_date'))
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(Session.title.ilike(pattern), Session.description.ilike(pattern)))

        sessions = query.order_by(Session.scheduled_date, Session.start_time, Session.ordinal).all()

        results = [SessionService.serialize(session, now) for session in sessions]
        if status:
            results = [item for item in results if item['status'] == status]
        return results

    @staticmethod
    def calendar_range(view, reference_date):
        """Inclusive (start, end) dates covered by a calendar view."""
        if view == 'day':
            return reference_date, reference_date
        if view == 'week':
            start = week_start(reference_date)
            return start, start + timedelta(days=6)
        if view == 'month':
            last_day = calendar.monthrange(reference_date.year, reference_date.month)[1]
            return reference_date.replace(day=1), reference_date.replace(day=last_day)
        raise ValidationError(f"Invalid view: {view}. Use one of: {', '.join(CALENDAR_VIEWS)}", field='view')

    @staticmethod
    def calendar_view(trainer_id=None, view='month', reference_date=None, now=None):
        """
        Sessions inside a day/week/month window formatted as calendar events.

        Returns:
            dict: view, start_date, end_date, count and events
        """
        now = now or get_now()
        reference = parse_date(reference_date, 'date') if reference_date else now.date()
        start_date, end_date = SessionService.calendar_range(view, reference)

        query = db.session.query(Session).filter(
            Session.scheduled_date >= start_date,
            Session.scheduled_date <= end_date
        )
        if trainer_id is not None:
            query = query.filter(Session.trainer_id == trainer_id)
        sessions = query.order_by(Session.scheduled_date, Session.start_time).all()

        events = []
        for session in sessions:
            group = session.group
            events.append({
                'id': session.id,
                'title': session.title,
                'ordinal': session.ordinal,
                'start': session.scheduled_start.isoformat() if session.scheduled_start else None,
                'end': session.scheduled_end.isoformat() if session.scheduled_end else None,
                'duration': session.duration or (
                    minutes_between(session.start_time, session.end_time)
                    if session.start_time and session.end_time else None),
                'group_id': session.group_id,
                'group_name': group.name if group else None,
                'group_color': group.color if group else current_app.config.get('DEFAULT_GROUP_COLOR'),
                'status': SessionService.compute_status(session, now),
                'location': session.location,
                'students_count': group.enrolled_count if group else 0
            })

        return {
            'view': view,
            'start_date': start_date.isoformat(),
            'end_date': end_date.isoformat(),
            'count': len(events),
            'events': events
        }
