# models/session.py
from datetime import datetime, time

from sqlalchemy import Index

from trainhub.extensions import db
from .base import BaseModel


class SessionStatus:
    """Session status constants."""
    SCHEDULED = 'scheduled'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    ALL = (SCHEDULED, IN_PROGRESS, COMPLETED, CANCELLED)


def _combine(day, hhmm):
    if day is None or not hhmm:
        return None
    hours, minutes = hhmm.split(':')
    return datetime.combine(day, time(int(hours), int(minutes)))


class Session(BaseModel):
    __tablename__ = 'session'

    group_id = db.Column(db.String(36), db.ForeignKey('student_group.id'), nullable=False, index=True)
    course_id = db.Column(db.String(36), db.ForeignKey('course.id'), nullable=True, index=True)
    trainer_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    ordinal = db.Column(db.Integer, nullable=False)

    # Schedule
    scheduled_date = db.Column(db.Date, nullable=True, index=True)
    start_time = db.Column(db.String(5), nullable=True)  # 'HH:MM'
    end_time = db.Column(db.String(5), nullable=True)
    duration = db.Column(db.Integer, nullable=True)  # minutes
    location = db.Column(db.String(200), nullable=True)

    lesson_plan = db.Column(db.JSON, nullable=False, default=dict)

    # Stored status only reflects explicit actions
    status = db.Column(db.String(20), default=SessionStatus.SCHEDULED, nullable=False, index=True)
    cancellation_reason = db.Column(db.String(500), nullable=True)
    actual_start_time = db.Column(db.DateTime, nullable=True)
    actual_end_time = db.Column(db.DateTime, nullable=True)

    group = db.relationship('Group', back_populates='sessions')
    trainer = db.relationship('User', foreign_keys=[trainer_id])
    evaluations = db.relationship('SessionEvaluation', back_populates='session',
                                  cascade='all, delete-orphan')

    __table_args__ = (
        Index('idx_session_trainer_date', 'trainer_id', 'scheduled_date'),
        Index('idx_session_group_date', 'group_id', 'scheduled_date'),
        Index('idx_session_status_date', 'status', 'scheduled_date'),
        Index('uq_session_group_ordinal', 'group_id', 'ordinal', unique=True),
    )

    @property
    def scheduled_start(self):
        return _combine(self.scheduled_date, self.start_time)

    @property
    def scheduled_end(self):
        return _combine(self.scheduled_date, self.end_time)

    @property
    def actual_duration(self):
        if not self.actual_start_time or not self.actual_end_time:
            return None
        return round((self.actual_end_time - self.actual_start_time).total_seconds() / 60)

    def to_dict(self, status=None):
        """Serialize; `status` overrides the stored value with a derived one."""
        result = super().to_dict()
        result['stored_status'] = self.status
        if status is not None:
            result['status'] = status
        result['scheduled_start'] = self.scheduled_start.isoformat() if self.scheduled_start else None
        result['scheduled_end'] = self.scheduled_end.isoformat() if self.scheduled_end else None
        result['actual_duration'] = self.actual_duration
        return result

    def __repr__(self):
        return f'<Session #{self.ordinal} {self.title} {self.scheduled_date}>'
