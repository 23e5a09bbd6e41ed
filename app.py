from flask import Flask, jsonify
import os

from errors import BracketError
from models import db
from blueprints.admin import admin_bp
from blueprints.public import public_bp

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

TRUTHY = {'1', 'true', 'yes', 'on'}


def _env_flag(name: str) -> bool:
    return os.environ.get(name, '').strip().lower() in TRUTHY


def _env_int(name: str):
    value = os.environ.get(name)
    if value is None or value.strip() == '':
        return None
    return int(value)


def load_config(instance_path: str) -> dict:
    """Configuration from the environment, with local SQLite as the fallback database."""
    config = {
        'SECRET_KEY': os.environ.get('SECRET_KEY', 'brackettrack'),
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BRACKET_LOCK_DIR': os.environ.get('BRACKET_LOCK_DIR') or instance_path,
        'BRACKET_LOCK_TIMEOUT': _env_int('BRACKET_LOCK_TIMEOUT') or 10,
        'BRACKET_AUTO_ADVANCE_BYES': _env_flag('BRACKET_AUTO_ADVANCE_BYES'),
        'BRACKET_RANDOM_SEED': _env_int('BRACKET_RANDOM_SEED'),
    }

    # Database configuration - supports both local SQLite and remote PostgreSQL
    database_url = os.environ.get('DATABASE_URL')
    if database_url:
        # Heroku PostgreSQL URL fix (postgres:// → postgresql://)
        if database_url.startswith('postgres://'):
            database_url = database_url.replace('postgres://', 'postgresql://', 1)
        config['SQLALCHEMY_DATABASE_URI'] = database_url
    else:
        sqlite_path = os.environ.get('SQLITE_PATH', os.path.join(instance_path, 'brackets.db'))
        config['SQLALCHEMY_DATABASE_URI'] = f'sqlite:///{sqlite_path}'

    return config


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(BracketError)
    def handle_bracket_error(error: BracketError):
        if error.status_code >= 500:
            app.logger.error('%s: %s', type(error).__name__, error.message)
        else:
            app.logger.info('Rejected request with %s: %s', type(error).__name__, error.message)
        return jsonify(error.to_dict()), error.status_code


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_path=os.path.join(BASE_DIR, 'instance'))
    os.makedirs(app.instance_path, exist_ok=True)

    app.config.from_mapping(load_config(app.instance_path))
    if test_config:
        app.config.from_mapping(test_config)

    if not app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite'):
        app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
            'pool_pre_ping': True,
            'pool_recycle': 300,
        }

    db.init_app(app)

    with app.app_context():
        db.create_all()
        app.logger.info('Database initialized at %s', db.engine.url.render_as_string(hide_password=True))

    app.register_blueprint(admin_bp)
    app.register_blueprint(public_bp)
    register_error_handlers(app)

    @app.route('/')
    def index():
        return jsonify({'name': 'BracketTrack', 'status': 'ok'})

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5000)
