# univote/__init__.py

from flask import Flask
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.middleware.proxy_fix import ProxyFix
import logging
import os
from datetime import timedelta

from univote.audit.audit_logger import AuditLogger
from univote.authentication.accounts import AccountService
from univote.database.archive import ArchiveStore
from univote.database.json_store import ElectionStore, UserStore
from univote.election.service import ElectionService
from univote.encryption.password_hashing import PasswordHashingService
from univote.errors import register_error_handlers
from univote.security.input_validator import InputValidator
from univote.security.token_manager import TokenManager

__version__ = "1.0.0"

# Extensions are bound to the app in create_app
jwt = JWTManager()
token_manager = TokenManager(jwt)
limiter = Limiter(key_func=get_remote_address, default_limits=["2000/hour"])


def _env_bool(name, default):
    return os.environ.get(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


def load_config(app):
    data_dir = os.environ.get('UNIVOTE_DATA_DIR', os.path.join(os.getcwd(), 'data'))
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'change-me-in-production')
    app.config['JWT_SECRET_KEY'] = os.environ.get('JWT_SECRET_KEY', 'change-me-in-production-univote-jwt')
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(hours=int(os.environ.get('JWT_TTL_HOURS', '24')))
    app.config['JWT_TOKEN_LOCATION'] = ['headers']  # Authorization: Bearer <token>
    app.config['DATA_DIR'] = data_dir
    app.config['ARCHIVE_DIR'] = os.environ.get('UNIVOTE_ARCHIVE_DIR', os.path.join(data_dir, 'archive'))
    app.config['AUDIT_LOG_DIR'] = os.environ.get('UNIVOTE_AUDIT_LOG_DIR', os.path.join(data_dir, 'logs'))
    app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO')
    app.config['RATELIMIT_ENABLED'] = _env_bool('RATELIMIT_ENABLED', True)
    app.config['RATELIMIT_STORAGE_URI'] = os.environ.get('REDIS_URL', 'memory://')
    app.config['VOTE_RATE_LIMIT'] = os.environ.get('VOTE_RATE_LIMIT', '30/minute')
    app.config['SIGN_IN_RATE_LIMIT'] = os.environ.get('SIGN_IN_RATE_LIMIT', '10/minute')
    app.config['ARGON2_TIME_COST'] = int(os.environ.get('ARGON2_TIME_COST', '3'))
    app.config['ARGON2_MEMORY_COST'] = int(os.environ.get('ARGON2_MEMORY_COST', '65536'))
    app.config['HEALTH_CHECK_NTP'] = _env_bool('HEALTH_CHECK_NTP', False)
    app.config['MIN_FREE_DISK_GB'] = float(os.environ.get('MIN_FREE_DISK_GB', '1'))


def configure_logging(level):
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logging.getLogger('univote').setLevel(level)


def create_app(config=None):
    app = Flask(__name__)
    load_config(app)
    if config:
        app.config.update(config)

    configure_logging(app.config['LOG_LEVEL'])

    # Fix proxy headers so rate limits key on the client address
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    token_manager.init_app(app)
    limiter.init_app(app)
    register_error_handlers(app)

    validator = InputValidator()
    audit_logger = AuditLogger(log_dir=app.config['AUDIT_LOG_DIR'])
    election_store = ElectionStore(os.path.join(app.config['DATA_DIR'], 'data.json'))
    user_store = UserStore(os.path.join(app.config['DATA_DIR'], 'users.json'))
    archive_store = ArchiveStore(app.config['ARCHIVE_DIR'])
    passwords = PasswordHashingService(
        time_cost=app.config['ARGON2_TIME_COST'],
        memory_cost=app.config['ARGON2_MEMORY_COST'],
    )

    app.extensions['univote'] = {
        'audit': audit_logger,
        'accounts': AccountService(user_store, audit_logger, passwords, validator),
        'election': ElectionService(election_store, user_store, archive_store, audit_logger, validator),
    }

    from univote.routes import bp
    from univote.cli import register_cli

    app.register_blueprint(bp)
    register_cli(app)

    app.logger.info('UniVote API ready; election data in %s', app.config['DATA_DIR'])
    return app
