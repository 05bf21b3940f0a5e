# models/group.py
from sqlalchemy import Index

from trainhub.extensions import db
from .base import BaseModel


class GroupStatus:
    """Group status constants."""
    ACTIVE = 'active'
    COMPLETED = 'completed'
    ARCHIVED = 'archived'
    CANCELLED = 'cancelled'

    ALL = (ACTIVE, COMPLETED, ARCHIVED, CANCELLED)


group_students = db.Table(
    'group_students',
    db.Column('group_id', db.String(36), db.ForeignKey('student_group.id'), primary_key=True),
    db.Column('student_id', db.String(36), db.ForeignKey('users.id'), primary_key=True),
)


class GroupScheduleEntry(BaseModel):
    """One slot of a group's weekly pattern."""

    __tablename__ = 'group_schedule_entry'

    group_id = db.Column(db.String(36), db.ForeignKey('student_group.id'), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    day = db.Column(db.String(10), nullable=False)  # 'Monday' .. 'Sunday'
    start_time = db.Column(db.String(5), nullable=False)  # 'HH:MM'
    end_time = db.Column(db.String(5), nullable=False)
    location = db.Column(db.String(200), nullable=True)

    group = db.relationship('Group', back_populates='schedule')

    def to_dict(self):
        return {
            'day': self.day,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'location': self.location
        }

    def __repr__(self):
        return f'<GroupScheduleEntry {self.day} {self.start_time}-{self.end_time}>'


class Group(BaseModel):
    __tablename__ = 'student_group'

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    course_id = db.Column(db.String(36), db.ForeignKey('course.id'), nullable=False, index=True)
    trainer_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    max_students = db.Column(db.Integer, default=30, nullable=False)
    color = db.Column(db.String(7), default='#30c59b', nullable=False)

    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), default=GroupStatus.ACTIVE, nullable=False)

    # Monotonic ordinal counter, only ever incremented
    sessions_created_count = db.Column(db.Integer, default=0, nullable=False)

    # Progress tracking
    total_sessions = db.Column(db.Integer, default=0, nullable=False)
    completed_sessions = db.Column(db.Integer, default=0, nullable=False)
    percentage_complete = db.Column(db.Integer, default=0, nullable=False)

    # Cached statistics, refreshed by the stats service
    average_attendance = db.Column(db.Integer, default=0, nullable=False)

    course = db.relationship('Course', back_populates='groups')
    trainer = db.relationship('User', foreign_keys=[trainer_id])
    students = db.relationship('User', secondary=group_students, lazy='select')
    schedule = db.relationship('GroupScheduleEntry', back_populates='group',
                               order_by='GroupScheduleEntry.position',
                               cascade='all, delete-orphan')
    sessions = db.relationship('Session', back_populates='group', lazy='dynamic')

    __table_args__ = (
        Index('idx_group_trainer_status', 'trainer_id', 'status'),
        Index('idx_group_dates', 'start_date', 'end_date'),
    )

    @property
    def enrolled_count(self):
        return len(self.students)

    def update_progress(self):
        """Recompute percentage_complete from the session counters."""
        if self.total_sessions > 0:
            self.percentage_complete = min(
                100, int(self.completed_sessions * 100 / self.total_sessions + 0.5)
            )
        else:
            self.percentage_complete = 0
        return self

    def to_dict(self, include_schedule=True):
        result = super().to_dict()
        result['enrolled_count'] = self.enrolled_count
        if include_schedule:
            result['schedule'] = [entry.to_dict() for entry in self.schedule]
        return result

    def __repr__(self):
        return f'<Group {self.name}>'
