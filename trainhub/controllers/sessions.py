# controllers/sessions.py
"""
Session routes.
Creation from the weekly pattern, listing with derived status, explicit
lifecycle actions, content edits, deletion and the calendar view.
"""

import logging

from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from trainhub.services.session_service import SessionService
from trainhub.utils.auth import trainer_required, acting_trainer_id
from trainhub.utils.time_utils import get_now

sessions_bp = Blueprint('sessions', __name__)

logger = logging.getLogger('session_service')


def _truthy(value):
    return str(value).lower() in ('1', 'true', 'yes')


@sessions_bp.route('/sessions', methods=['POST'])
@login_required
@trainer_required
def create_session():
    """Create the next session of one of the trainer's groups."""
    data = request.get_json(silent=True) or {}
    now = get_now()
    session = SessionService.create_session(acting_trainer_id(), data, now=now)

    return jsonify({
        'success': True,
        'message': 'Session created successfully',
        'data': SessionService.serialize(session, now)
    }), 201


@sessions_bp.route('/sessions', methods=['GET'])
@login_required
@trainer_required
def list_sessions():
    """List sessions; filters: group_id, status, start_date, end_date, search."""
    sessions = SessionService.list_sessions(
        trainer_id=acting_trainer_id(),
        group_id=request.args.get('group_id'),
        status=request.args.get('status'),
        start_date=request.args.get('start_date'),
        end_date=request.args.get('end_date'),
        search=request.args.get('search'),
        now=get_now()
    )
    return jsonify({'success': True, 'count': len(sessions), 'data': sessions})


@sessions_bp.route('/sessions/<session_id>', methods=['GET'])
@login_required
@trainer_required
def get_session(session_id):
    session = SessionService.get_session(session_id, acting_trainer_id())
    return jsonify({'success': True, 'data': SessionService.serialize(session, get_now(), detail=True)})


@sessions_bp.route('/sessions/<session_id>', methods=['PATCH'])
@login_required
@trainer_required
def update_session(session_id):
    """Update title, description or lesson plan."""
    session = SessionService.get_session(session_id, acting_trainer_id())
    SessionService.update_content(session, request.get_json(silent=True) or {})

    return jsonify({
        'success': True,
        'message': 'Session updated successfully',
        'data': SessionService.serialize(session, get_now())
    })


@sessions_bp.route('/sessions/<session_id>/lesson-plan', methods=['PUT'])
@login_required
@trainer_required
def update_lesson_plan(session_id):
    session = SessionService.get_session(session_id, acting_trainer_id())
    SessionService.update_lesson_plan(session, request.get_json(silent=True))

    return jsonify({
        'success': True,
        'message': 'Lesson plan updated successfully',
        'data': session.lesson_plan
    })


@sessions_bp.route('/sessions/<session_id>/start', methods=['POST'])
@login_required
@trainer_required
def start_session(session_id):
    now = get_now()
    session = SessionService.get_session(session_id, acting_trainer_id())
    SessionService.start_session(session, now)

    return jsonify({
        'success': True,
        'message': 'Session started successfully',
        'data': SessionService.serialize(session, now)
    })


@sessions_bp.route('/sessions/<session_id>/end', methods=['POST'])
@login_required
@trainer_required
def end_session(session_id):
    now = get_now()
    session = SessionService.get_session(session_id, acting_trainer_id())
    SessionService.end_session(session, now)

    return jsonify({
        'success': True,
        'message': 'Session ended successfully',
        'data': SessionService.serialize(session, now)
    })


@sessions_bp.route('/sessions/<session_id>', methods=['DELETE'])
@login_required
@trainer_required
def delete_session(session_id):
    """Cancel a session, or remove it with ?permanent=true."""
    session = SessionService.get_session(session_id, acting_trainer_id())
    permanent = _truthy(request.args.get('permanent', 'false'))

    result = SessionService.delete_session(session, permanent=permanent, reason=request.args.get('reason'))
    if permanent:
        logger.info(f"Session {session_id} permanently deleted by {current_user.id}")
        return jsonify({'success': True, 'message': 'Session permanently deleted'})

    return jsonify({
        'success': True,
        'message': 'Session cancelled successfully',
        'data': SessionService.serialize(result, get_now())
    })


@sessions_bp.route('/calendar', methods=['GET'])
@login_required
@trainer_required
def calendar_view():
    """Sessions as calendar events; ?view=day|week|month&date=YYYY-MM-DD."""
    data = SessionService.calendar_view(
        trainer_id=acting_trainer_id(),
        view=request.args.get('view', 'month'),
        reference_date=request.args.get('date'),
        now=get_now()
    )
    return jsonify({'success': True, 'data': data})
