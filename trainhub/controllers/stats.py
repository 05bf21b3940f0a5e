# controllers/stats.py
"""
Statistics routes for dashboards and alerting.
"""

from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from trainhub.services.group_service import GroupService
from trainhub.services.stats_service import StatsService
from trainhub.utils.auth import admin_required, trainer_required, acting_trainer_id
from trainhub.utils.time_utils import get_now

stats_bp = Blueprint('stats', __name__)


@stats_bp.route('/dashboard', methods=['GET'])
@login_required
@admin_required
def dashboard():
    """Platform overview with top trainers."""
    data = {
        'stats': StatsService.dashboard_overview(now=get_now()),
        'top_trainers': StatsService.trainer_ranking()
    }
    return jsonify({'success': True, 'data': data})


@stats_bp.route('/trainers', methods=['GET'])
@login_required
@admin_required
def trainers():
    limit = request.args.get('limit', type=int)
    return jsonify({'success': True, 'data': StatsService.trainer_ranking(limit=limit)})


@stats_bp.route('/courses', methods=['GET'])
@login_required
@admin_required
def courses():
    limit = request.args.get('limit', type=int)
    return jsonify({'success': True, 'data': StatsService.course_popularity(limit=limit)})


@stats_bp.route('/alerts', methods=['GET'])
@login_required
@trainer_required
def alerts():
    """Low-attendance alerts; trainers only see their own groups."""
    data = StatsService.low_attendance_alerts(acting_trainer_id())
    return jsonify({'success': True, 'count': len(data), 'data': data})


@stats_bp.route('/trends', methods=['GET'])
@login_required
@admin_required
def trends():
    days = request.args.get('days', type=int)
    return jsonify({'success': True, 'data': StatsService.attendance_trends(days=days, now=get_now())})


@stats_bp.route('/groups/<group_id>', methods=['GET'])
@login_required
@trainer_required
def group_stats(group_id):
    group = GroupService.get_group(group_id, acting_trainer_id())
    return jsonify({'success': True, 'data': StatsService.group_stats(group)})


@stats_bp.route('/notifications', methods=['GET'])
@login_required
@trainer_required
def notifications():
    data = StatsService.trainer_notifications(current_user.id, now=get_now())
    return jsonify({'success': True, 'data': data})
