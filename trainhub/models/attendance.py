# models/attendance.py
from sqlalchemy import Index

from trainhub.extensions import db
from .base import BaseModel


class AttendanceStatus:
    """Attendance status constants."""
    PRESENT = 'present'
    ABSENT = 'absent'
    LATE = 'late'
    EXCUSED = 'excused'

    ALL = (PRESENT, ABSENT, LATE, EXCUSED)
    CHECKED_IN = (PRESENT, LATE)


class AttendanceRecord(BaseModel):
    """Attendance sheet for one course on one calendar date."""

    __tablename__ = 'attendance_record'

    course_id = db.Column(db.String(36), db.ForeignKey('course.id'), nullable=False, index=True)
    session_date = db.Column(db.Date, nullable=False, index=True)
    session_id = db.Column(db.String(36), nullable=True, index=True)  # session that opened the sheet

    title = db.Column(db.String(200), nullable=False)
    start_time = db.Column(db.String(5), nullable=True)
    end_time = db.Column(db.String(5), nullable=True)
    location = db.Column(db.String(200), nullable=True)

    entries = db.relationship('StudentAttendance', back_populates='record',
                              cascade='all, delete-orphan', order_by='StudentAttendance.created_at')

    __table_args__ = (
        Index('uq_attendance_scope', 'course_id', 'session_date', unique=True),
    )

    def get_entry(self, student_id):
        """Return the student's entry on this sheet, if any."""
        for entry in self.entries:
            if entry.student_id == student_id:
                return entry
        return None

    def to_dict(self):
        result = super().to_dict()
        result['entries'] = [entry.to_dict() for entry in self.entries]
        return result

    def __repr__(self):
        return f'<AttendanceRecord {self.course_id} {self.session_date}>'


class StudentAttendance(BaseModel):
    __tablename__ = 'student_attendance'

    record_id = db.Column(db.String(36), db.ForeignKey('attendance_record.id'), nullable=False, index=True)
    student_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    status = db.Column(db.String(10), default=AttendanceStatus.ABSENT, nullable=False, index=True)
    marked_by = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)
    marked_at = db.Column(db.DateTime, nullable=False)
    notes = db.Column(db.String(500), nullable=True)
    check_in_time = db.Column(db.DateTime, nullable=True)

    record = db.relationship('AttendanceRecord', back_populates='entries')

    __table_args__ = (
        Index('uq_student_attendance_record_student', 'record_id', 'student_id', unique=True),
        Index('idx_student_attendance_student_status', 'student_id', 'status'),
    )

    def to_dict(self):
        return super().to_dict(exclude=('created_at', 'updated_at'))

    def __repr__(self):
        return f'<StudentAttendance {self.student_id} {self.status}>'
