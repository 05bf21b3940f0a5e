# extensions.py
"""
Flask extensions initialization.
This file initializes all Flask extensions to avoid circular imports.
Extensions are initialized here and then bound to the app in the application factory.
"""

import logging
import threading
import time

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from sqlalchemy import text

# Initialize extensions without app binding
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()

# Connection monitoring
connection_stats = {
    'total_checks': 0,
    'failed_checks': 0,
    'last_check': 0,
    'healthy': True
}
connection_lock = threading.Lock()

logger = logging.getLogger(__name__)


def get_connection_stats():
    """
    Get current database connection statistics.

    Returns:
        dict: Connection statistics
    """
    with connection_lock:
        return connection_stats.copy()


def check_database_health():
    """
    Run a trivial query against the configured database.

    Returns:
        tuple: (healthy, message)
    """
    try:
        db.session.execute(text("SELECT 1"))

        with connection_lock:
            connection_stats['total_checks'] += 1
            connection_stats['healthy'] = True
            connection_stats['last_check'] = time.time()

        return True, "Database connection is healthy"

    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db.session.rollback()

        with connection_lock:
            connection_stats['failed_checks'] += 1
            connection_stats['healthy'] = False
            connection_stats['last_check'] = time.time()

        return False, f"Database connection failed: {str(e)}"


def _extract_bearer_token(request):
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def init_extensions(app):
    """
    Initialize all extensions with proper order and configuration.

    Args:
        app: Flask application instance
    """
    # Step 1: Initialize database first (required by other extensions)
    db.init_app(app)
    migrate.init_app(app, db)

    # Step 2: Initialize Flask-Login; the API is stateless so identities come from tokens
    login_manager.init_app(app)
    login_manager.session_protection = None

    @login_manager.user_loader
    def load_user(user_id):
        # Import here to avoid circular imports
        from trainhub.models import User
        return db.session.get(User, user_id)

    @login_manager.request_loader
    def load_user_from_request(request):
        from trainhub.models import User

        token = _extract_bearer_token(request)
        if not token:
            return None

        user = db.session.query(User).filter_by(api_token=token).first()
        if user is None or not user.is_active:
            logger.warning("Rejected API request with unknown or inactive token")
            return None
        return user

    app.logger.info("Extensions initialized successfully in correct order")
