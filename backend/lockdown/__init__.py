from flask import Flask, g, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Trusted clock and per-team locks shared by every request of this app
    from lockdown.services.timing.clock import SystemClock
    from lockdown.services.timing.store import TeamLockRegistry
    flask_app.extensions['lockdown_clock'] = SystemClock()
    flask_app.extensions['lockdown_team_locks'] = TeamLockRegistry()

    from lockdown.main import main
    flask_app.register_blueprint(main)

    from lockdown.api.timer import timer
    flask_app.register_blueprint(timer, url_prefix='/timer')

    from lockdown.api.hints import hints
    flask_app.register_blueprint(hints, url_prefix='/hints')

    from lockdown.api.levels import levels
    flask_app.register_blueprint(levels, url_prefix='/levels')

    from lockdown.api.admin import admin
    flask_app.register_blueprint(admin, url_prefix='/admin')

    # Register Socket.IO event handlers
    try:
        from lockdown.socketio_events import register_socketio_handlers
        register_socketio_handlers(testing=flask_app.config.get('TESTING', False))
    except Exception as exc:
        flask_app.logger.warning(f"SocketIO events not loaded: {exc}")

    # Caller identity is authenticated upstream and forwarded as headers
    from lockdown.auth import load_principal_from_request

    login_manager.request_loader(load_principal_from_request)

    @flask_app.before_request
    def resolve_principal_per_request():
        # an app context can span several requests (test client, CLI)
        g.pop('_login_user', None)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error_kind': 'Unauthenticated', 'message': 'Authentication required'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database with a demo competition."""
        from lockdown.seed import seed_demo_competition
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            seed_demo_competition()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
