# app.py
"""
Main application entry point.
This module creates the Flask application instance and handles application startup.
"""

import os

from trainhub import create_app


def create_application():
    """
    Create and configure the Flask application.

    Returns:
        Flask: Configured application instance
    """
    # Get configuration from environment
    config_name = os.environ.get('FLASK_ENV', 'development')

    # Create application using factory
    app = create_app(config_name)

    # Additional production-specific setup
    if config_name == 'production':
        setup_production_features(app)

    return app


def setup_production_features(app):
    """
    Setup production-specific features.

    Args:
        app: Flask application instance
    """
    import logging
    from logging.handlers import SysLogHandler

    if app.config.get('SYSLOG_SERVER'):
        syslog_handler = SysLogHandler(address=app.config['SYSLOG_SERVER'])
        syslog_handler.setLevel(logging.ERROR)
        app.logger.addHandler(syslog_handler)

    # Ensure the log directory exists before gunicorn workers write to it
    if app.config.get('LOG_DIR'):
        os.makedirs(app.config['LOG_DIR'], exist_ok=True)

    app.logger.info("Production features configured")


# Create the application instance
app = create_application()


# Development server configuration
if __name__ == '__main__':
    # Only run directly in development
    port = int(os.environ.get('PORT', 5000))
    debug = os.environ.get('FLASK_ENV') == 'development'

    app.logger.info(f"Starting development server on port {port}, debug={debug}")

    app.run(
        host='0.0.0.0',
        port=port,
        debug=debug,
        threaded=True
    )
