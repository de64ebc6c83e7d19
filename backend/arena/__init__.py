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

    from arena.main import main
    flask_app.register_blueprint(main)

    from arena.api.rounds import rounds
    flask_app.register_blueprint(rounds, url_prefix='/api/rounds')

    from arena.api.accounts import accounts
    flask_app.register_blueprint(accounts, url_prefix='/api/accounts')

    from arena.api.admin import admin
    flask_app.register_blueprint(admin, url_prefix='/api/admin')

    from arena.errors import register_error_handlers
    register_error_handlers(flask_app)

    from arena.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from arena.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    # Identity comes from the upstream provider; the header is trusted as given
    @login_manager.request_loader
    def load_user_from_request(req):
        raw = req.headers.get('X-User-Id')
        if not raw:
            return None
        try:
            return db.session.get(User, int(raw))
        except ValueError:
            return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Authentication required', 'code': 'unauthorized'}), 401

    # The header identifies the caller per request, never per app context
    @flask_app.teardown_request
    def forget_request_user(exc):
        g.pop('_login_user', None)

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from arena.services.ledger import open_account
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            open_account('admin', is_admin=True)
            for u in ['testuser1', 'testuser2', 'testuser3']:
                open_account(u, points=1000, cash=0)

            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
