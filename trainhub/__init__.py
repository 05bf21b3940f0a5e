# __init__.py
"""
Application factory for the training-center scheduling service.
This module creates and configures the Flask application using the application factory pattern.
"""

import os
import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler

from flask import Flask, jsonify
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from trainhub.config import config_by_name
from trainhub.extensions import init_extensions, db
from trainhub.services.errors import SchedulingError

SERVICE_LOGGERS = ('group_service', 'session_service', 'attendance_service', 'stats_service')


def setup_logging(app):
    """
    Configure structured logging for the application.

    Args:
        app: Flask application instance
    """
    # Configure log format
    log_format = logging.Formatter(
        '%(asctime)s %(levelname)s %(name)s %(threadName)s : %(message)s'
    )
    level = logging.DEBUG if app.debug else logging.INFO

    handlers = []

    # File handler with rotation
    if app.config.get('LOG_TO_FILE'):
        log_dir = app.config.get('LOG_DIR') or os.path.join(app.root_path, 'logs')
        os.makedirs(log_dir, exist_ok=True)

        file_handler = RotatingFileHandler(
            os.path.join(log_dir, 'app.log'),
            maxBytes=1024 * 1024 * 10,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(log_format)
        file_handler.setLevel(logging.INFO)
        handlers.append(file_handler)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(log_format)
    console_handler.setLevel(level)
    handlers.append(console_handler)

    # Application and service loggers share the same handlers; replace any
    # left over from a previous app instance in this process
    for target in [app.logger] + [logging.getLogger(name) for name in SERVICE_LOGGERS]:
        for existing in list(target.handlers):
            target.removeHandler(existing)
        target.setLevel(level)
        for handler in handlers:
            target.addHandler(handler)

    # Forcefully suppress SQLAlchemy logs
    sa_logger = logging.getLogger('sqlalchemy.engine')
    sa_logger.setLevel(logging.WARNING)
    sa_logger.propagate = False


def register_blueprints(app):
    """
    Register all application blueprints.

    Args:
        app: Flask application instance
    """
    try:
        # Import blueprints here to avoid circular imports
        from .controllers.groups import groups_bp
        from .controllers.sessions import sessions_bp
        from .controllers.attendance import attendance_bp
        from .controllers.stats import stats_bp

        # Register blueprints with their URL prefixes
        app.register_blueprint(groups_bp, url_prefix='/api/groups')
        app.register_blueprint(sessions_bp, url_prefix='/api')
        app.register_blueprint(attendance_bp, url_prefix='/api/attendance')
        app.register_blueprint(stats_bp, url_prefix='/api/stats')

        app.logger.info("All blueprints registered successfully")

    except ImportError as e:
        app.logger.error(f"Failed to import blueprint: {str(e)}")
        raise


def register_error_handlers(app):
    """
    Register global error handlers.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(SchedulingError)
    def handle_scheduling_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({'success': False, 'message': e.description}), e.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        app.logger.error(f"Unhandled exception: {str(e)}", exc_info=True)
        return jsonify({
            'success': False,
            'message': str(e) if app.debug else 'Internal server error'
        }), 500


def register_shell_context(app):
    """
    Register shell context for flask shell command.

    Args:
        app: Flask application instance
    """

    @app.shell_context_processor
    def make_shell_context():
        from trainhub.models import (
            User, Course, Enrollment, Group, Session, AttendanceRecord, StudentAttendance
        )
        return {
            'db': db,
            'User': User,
            'Course': Course,
            'Enrollment': Enrollment,
            'Group': Group,
            'Session': Session,
            'AttendanceRecord': AttendanceRecord,
            'StudentAttendance': StudentAttendance
        }


def register_health_checks(app):
    """
    Register health check endpoints.

    Args:
        app: Flask application instance
    """

    @app.route('/health')
    def health_check():
        """Basic health check endpoint."""
        return jsonify({
            'status': 'ok',
            'timestamp': datetime.now().isoformat(),
            'version': app.config.get('VERSION', '1.0.0')
        })

    @app.route('/health/database')
    def database_health_check():
        """Database health check endpoint."""
        from trainhub.extensions import check_database_health, get_connection_stats

        healthy, message = check_database_health()
        stats = get_connection_stats()

        return jsonify({
            'status': 'healthy' if healthy else 'unhealthy',
            'message': message,
            'stats': stats,
            'timestamp': datetime.now().isoformat()
        }), 200 if healthy else 503


def create_app(config_name=None):
    """
    Application factory function.

    Args:
        config_name (str): Configuration name ('development', 'production', 'testing')

    Returns:
        Flask: Configured Flask application instance
    """
    # Load environment variables
    load_dotenv()

    # Create Flask application
    app = Flask(__name__)

    # Load configuration
    config_name = config_name or os.environ.get('FLASK_ENV', 'development')
    config_class = config_by_name[config_name]
    app.config.from_object(config_class)

    issues = config_class.validate()
    if issues:
        raise RuntimeError('; '.join(issues))

    # Setup logging first
    setup_logging(app)
    app.logger.info(f"Starting application with config: {config_name}")

    # Initialize extensions
    init_extensions(app)

    # Register components
    register_blueprints(app)
    register_error_handlers(app)
    register_shell_context(app)
    register_health_checks(app)

    # Register CLI commands
    from .cli import register_cli_commands
    register_cli_commands(app)

    app.logger.info("Application factory completed successfully")

    return app
