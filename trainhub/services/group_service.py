# services/group_service.py
"""
Group provisioning and lookup.
Validates weekly patterns and date ranges, manages the roster, and exposes the
ownership-checked lookups the session and attendance services depend on.
"""

import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError

from trainhub.extensions import db
from trainhub.models import Course, Group, GroupScheduleEntry, GroupStatus, User, RoleType
from trainhub.services.errors import ValidationError, NotFound
from trainhub.services.schedule_resolver import WeeklyPatternEntry
from trainhub.utils.time_utils import parse_date


class GroupService:
    """Service class for group provisioning and lookups."""

    @staticmethod
    def parse_weekly_pattern(raw_pattern):
        """
        Validate a weekly pattern from request data.

        Args:
            raw_pattern: list of {'day', 'start_time', 'end_time', 'location'?} dicts

        Returns:
            list: WeeklyPatternEntry items in the given order
        """
        if raw_pattern is None:
            return []
        if not isinstance(raw_pattern, list):
            raise ValidationError('schedule must be a list of weekly slots', field='schedule')

        entries = []
        for index, item in enumerate(raw_pattern):
            if not isinstance(item, dict):
                raise ValidationError(f'schedule[{index}] must be an object', field='schedule')
            try:
                entries.append(WeeklyPatternEntry.from_dict(item))
            except ValidationError as e:
                raise ValidationError(e.message, field=f'schedule[{index}].{e.field}')
        return entries

    @staticmethod
    def create_group(trainer_id, data):
        """
        Create a group for a trainer.

        Args:
            trainer_id: Acting trainer's user ID
            data: dict with name, course_id, start_date, end_date and optional
                  description, schedule, student_ids, max_students, color

        Returns:
            Group: The persisted group
        """
        logger = logging.getLogger('group_service')

        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationError('Group name is required', field='name')

        course_id = data.get('course_id')
        if not course_id:
            raise ValidationError('course_id is required', field='course_id')
        if db.session.get(Course, course_id) is None:
            raise NotFound('Course not found', field='course_id')

        if not data.get('start_date'):
            raise ValidationError('start_date is required', field='start_date')
        if not data.get('end_date'):
            raise ValidationError('end_date is required', field='end_date')
        start_date = parse_date(data['start_date'], 'start_date')
        end_date = parse_date(data['end_date'], 'end_date')
        if end_date <= start_date:
            raise ValidationError('End date must be after start date', field='end_date')

        pattern = GroupService.parse_weekly_pattern(data.get('schedule'))

        max_students = data.get('max_students') or current_app.config.get('DEFAULT_MAX_STUDENTS', 30)
        try:
            max_students = int(max_students)
        except (TypeError, ValueError):
            raise ValidationError('max_students must be an integer', field='max_students')
        if not 1 <= max_students <= 100:
            raise ValidationError('max_students must be between 1 and 100', field='max_students')

        students = GroupService._load_students(data.get('student_ids') or [])
        if len(students) > max_students:
            raise ValidationError('Group is full', field='student_ids')

        group = Group(
            name=name,
            description=data.get('description'),
            course_id=course_id,
            trainer_id=trainer_id,
            max_students=max_students,
            color=data.get('color') or current_app.config.get('DEFAULT_GROUP_COLOR', '#30c59b'),
            start_date=start_date,
            end_date=end_date,
            status=GroupStatus.ACTIVE,
            sessions_created_count=0,
            total_sessions=0,
            completed_sessions=0,
            percentage_complete=0,
            average_attendance=0
        )
        group.students = students
        group.schedule = [
            GroupScheduleEntry(position=position, day=entry.day, start_time=entry.start_time,
                               end_time=entry.end_time, location=entry.location)
            for position, entry in enumerate(pattern)
        ]

        try:
            db.session.add(group)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            logger.error(f"Integrity error creating group '{name}'", exc_info=True)
            raise

        logger.info(f"Group {group.id} '{name}' created for trainer {trainer_id} "
                    f"with {len(pattern)} weekly slots and {len(students)} students")
        return group

    @staticmethod
    def _load_students(student_ids):
        if not isinstance(student_ids, list):
            raise ValidationError('student_ids must be a list', field='student_ids')
        if not student_ids:
            return []

        students = (
            db.session.query(User)
            .filter(User.id.in_(student_ids), User.role == RoleType.STUDENT)
            .all()
        )
        found = {student.id for student in students}
        missing = [sid for sid in student_ids if sid not in found]
        if missing:
            raise NotFound(f"Students not found: {', '.join(missing)}", field='student_ids')
        return students

    @staticmethod
    def get_group(group_id, trainer_id=None):
        """
        Fetch a group, optionally requiring that it belongs to `trainer_id`.

        Raises:
            NotFound: when missing or owned by someone else
        """
        group = db.session.get(Group, group_id) if group_id else None
        if group is None or (trainer_id is not None and group.trainer_id != trainer_id):
            raise NotFound('Group not found or does not belong to you')
        return group

    @staticmethod
    def roster_ids(group):
        return [student.id for student in group.students]
