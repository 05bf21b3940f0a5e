# controllers/attendance.py
"""
Attendance routes.
Bulk marking for a session (or a group on a date) and the student/session summaries.
"""

from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from trainhub.services.attendance_service import AttendanceService
from trainhub.services.errors import ValidationError
from trainhub.utils.auth import trainer_required, acting_trainer_id, PermissionChecker

attendance_bp = Blueprint('attendance', __name__)


@attendance_bp.route('', methods=['POST'])
@login_required
@trainer_required
def save_attendance():
    """
    Mark attendance.

    Body: {session_id | group_id + date, records: [{student_id, status, notes?}]}
    """
    data = request.get_json(silent=True) or {}
    result = AttendanceService.save_attendance(
        trainer_id=acting_trainer_id(),
        marked_by=current_user.id,
        records=data.get('records'),
        session_id=data.get('session_id'),
        group_id=data.get('group_id'),
        date=data.get('date')
    )

    return jsonify({
        'success': True,
        'message': 'Attendance saved successfully',
        'data': result
    })


@attendance_bp.route('/session/<session_id>', methods=['GET'])
@login_required
@trainer_required
def session_attendance(session_id):
    data = AttendanceService.get_session_attendance(session_id, acting_trainer_id())
    return jsonify({'success': True, 'data': data})


@attendance_bp.route('/summary', methods=['GET'])
@login_required
def student_summary():
    """Per-course summary for one student; students may only read their own."""
    course_id = request.args.get('course_id')
    student_id = request.args.get('student_id') or current_user.id
    if not course_id:
        raise ValidationError('course_id is required', field='course_id')

    if not PermissionChecker.can_view_student(current_user, student_id):
        return jsonify({'success': False, 'message': 'Access forbidden'}), 403

    return jsonify({'success': True, 'data': AttendanceService.student_summary(course_id, student_id)})


@attendance_bp.route('/overview', methods=['GET'])
@login_required
def student_overview():
    student_id = request.args.get('student_id') or current_user.id

    if not PermissionChecker.can_view_student(current_user, student_id):
        return jsonify({'success': False, 'message': 'Access forbidden'}), 403

    return jsonify({'success': True, 'data': AttendanceService.student_overview(student_id)})
