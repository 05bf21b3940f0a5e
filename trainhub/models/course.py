# models/course.py
from sqlalchemy import Index

from trainhub.extensions import db
from .base import BaseModel


class EnrollmentStatus:
    """Enrollment status constants."""
    PENDING = 'pending'
    ACTIVE = 'active'
    COMPLETED = 'completed'
    DROPPED = 'dropped'


class Course(BaseModel):
    """Course catalogue entry. Managed by the course module; read here for rollups."""

    __tablename__ = 'course'

    title = db.Column(db.String(200), nullable=False)
    category = db.Column(db.String(80), nullable=True)
    status = db.Column(db.String(20), default='published', nullable=False)

    enrollments = db.relationship('Enrollment', back_populates='course', lazy='dynamic')
    groups = db.relationship('Group', back_populates='course', lazy='dynamic')

    def __repr__(self):
        return f'<Course {self.title}>'


class Enrollment(BaseModel):
    __tablename__ = 'enrollment'

    course_id = db.Column(db.String(36), db.ForeignKey('course.id'), nullable=False, index=True)
    student_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    status = db.Column(db.String(20), default=EnrollmentStatus.PENDING, nullable=False)

    course = db.relationship('Course', back_populates='enrollments')
    student = db.relationship('User')

    __table_args__ = (
        Index('idx_enrollment_course_status', 'course_id', 'status'),
        Index('uq_enrollment_course_student', 'course_id', 'student_id', unique=True),
    )

    def __repr__(self):
        return f'<Enrollment {self.student_id} -> {self.course_id} ({self.status})>'
