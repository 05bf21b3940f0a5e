# controllers/groups.py
"""
Group routes.
Trainers create groups with a weekly pattern and roster, and read them back.
"""

from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user

from trainhub.services.group_service import GroupService
from trainhub.utils.auth import trainer_required, acting_trainer_id

groups_bp = Blueprint('groups', __name__)


@groups_bp.route('', methods=['POST'])
@login_required
@trainer_required
def create_group():
    """Create a group owned by the current trainer."""
    data = request.get_json(silent=True) or {}
    group = GroupService.create_group(current_user.id, data)

    return jsonify({
        'success': True,
        'message': 'Group created successfully',
        'data': group.to_dict()
    }), 201


@groups_bp.route('/<group_id>', methods=['GET'])
@login_required
@trainer_required
def get_group(group_id):
    group = GroupService.get_group(group_id, acting_trainer_id())

    data = group.to_dict()
    data['students'] = [student.to_summary() for student in group.students]
    return jsonify({'success': True, 'data': data})
