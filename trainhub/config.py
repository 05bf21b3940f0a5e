import os
from dotenv import load_dotenv

load_dotenv()


def _mysql_uri(base_uri, connect_timeout, read_timeout, write_timeout):
    """Append PyMySQL connection parameters to a MySQL URI."""
    from urllib.parse import urlparse, urlunparse
    parsed = urlparse(base_uri)

    query_params = {
        'charset': 'utf8mb4',
        'connect_timeout': str(connect_timeout),
        'read_timeout': str(read_timeout),
        'write_timeout': str(write_timeout),
    }

    query_string = '&'.join([f"{k}={v}" for k, v in query_params.items()])
    new_query = f"{parsed.query}&{query_string}" if parsed.query else query_string

    return urlunparse((
        parsed.scheme,
        parsed.netloc,
        parsed.path,
        parsed.params,
        new_query,
        parsed.fragment
    ))


class Config:
    """Base configuration class with all settings as static attributes."""

    # Core configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key'
    DEBUG = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'
    VERSION = '1.0.0'
    JSON_SORT_KEYS = False

    # Database connection timeouts (MySQL only)
    MYSQL_CONNECT_TIMEOUT = 30
    MYSQL_READ_TIMEOUT = 30
    MYSQL_WRITE_TIMEOUT = 30

    # Database configuration, falling back to SQLite if no DATABASE_URL is provided
    base_db_uri = os.environ.get('DATABASE_URL') or 'sqlite:///trainhub.db'

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
    }

    if base_db_uri.startswith('mysql'):
        SQLALCHEMY_DATABASE_URI = _mysql_uri(
            base_db_uri, MYSQL_CONNECT_TIMEOUT, MYSQL_READ_TIMEOUT, MYSQL_WRITE_TIMEOUT
        )
        # pool_recycle is an engine option, not a PyMySQL parameter
        SQLALCHEMY_ENGINE_OPTIONS = {
            "pool_recycle": 3600,
            "pool_pre_ping": True,
            "pool_size": 10,
            "max_overflow": 20,
        }
    else:
        SQLALCHEMY_DATABASE_URI = base_db_uri

    # Logging
    BASE_DIR = os.path.dirname(os.path.abspath(__file__))
    LOG_DIR = os.environ.get('LOG_DIR') or os.path.join(BASE_DIR, 'logs')
    LOG_TO_FILE = os.environ.get('LOG_TO_FILE', 'true').lower() == 'true'

    # Clock source; None means datetime.now
    CLOCK = None

    # Scheduling settings
    DEFAULT_GROUP_COLOR = '#30c59b'
    DEFAULT_MAX_STUDENTS = 30
    DEFAULT_CANCELLATION_REASON = 'Cancelled by trainer'

    # Statistics and alerting
    LOW_ATTENDANCE_THRESHOLD = 70
    TOP_TRAINERS_LIMIT = 5
    COURSE_POPULARITY_LIMIT = 10
    EVALUATION_REMINDER_DAYS = 3
    TRENDS_DEFAULT_DAYS = 30

    # Size of generated API tokens
    API_TOKEN_BYTES = 32

    @classmethod
    def validate(cls):
        """Return a list of configuration problems (empty when valid)."""
        return []


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_ECHO = os.environ.get('SQL_DEBUG', 'false').lower() == 'true'


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    SECRET_KEY = os.environ.get('SECRET_KEY')

    @classmethod
    def validate(cls):
        issues = []
        if not os.environ.get('SECRET_KEY'):
            issues.append("SECRET_KEY environment variable must be set in production")
        if not os.environ.get('DATABASE_URL'):
            issues.append("DATABASE_URL environment variable must be set in production")
        return issues


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    LOG_TO_FILE = False

    # Override for testing
    TOP_TRAINERS_LIMIT = 10


# Configuration dictionary
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}
