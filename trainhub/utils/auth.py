# utils/auth.py
from functools import wraps
from flask import jsonify
from flask_login import current_user
from trainhub.models import RoleType


def role_required(*roles):
    """Decorator to require specific role(s)."""

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify({'success': False, 'message': 'Authentication required'}), 401

            if not current_user.has_any_role(roles):
                return jsonify({'success': False, 'message': f'Role required: {", ".join(roles)}'}), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator


trainer_required = role_required(RoleType.TRAINER, RoleType.ADMIN)
admin_required = role_required(RoleType.ADMIN)


def acting_trainer_id():
    """Owner to enforce for the current user; admins may act on any trainer's data."""
    if current_user.is_admin():
        return None
    return current_user.id


class PermissionChecker:
    """Utility class for permission checks that depend on the target record."""

    @staticmethod
    def can_view_student(user, student_id):
        """Staff can view any student; students only themselves."""
        if user.has_any_role((RoleType.ADMIN, RoleType.TRAINER)):
            return True
        return user.id == student_id
