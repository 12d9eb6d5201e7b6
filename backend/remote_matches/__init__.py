from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # The lifecycle service is the single writer of match state
    from remote_matches.services.matches.lifecycle import MatchLifecycleService
    flask_app.extensions['match_service'] = MatchLifecycleService.from_config(flask_app.config)

    # Import and register blueprints here
    from remote_matches.main import main
    flask_app.register_blueprint(main)

    from remote_matches.api.matches import matches
    flask_app.register_blueprint(matches, url_prefix='/api/matches')

    # Register Socket.IO event handlers
    from remote_matches.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from remote_matches.models import User
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users
            for username in ['testuser1', 'testuser2', 'testuser3']:
                db.session.add(User(username=username))

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('sweep-expired')
    def sweep_expired_command():
        """Expires pending challenges and join windows that have lapsed."""
        from remote_matches.services.matches.sweeper import sweep_expired_matches
        with flask_app.app_context():
            expired = sweep_expired_matches(flask_app.extensions['match_service'])
            print(f'Expired {expired} match(es).')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(sweep_expired_command)

    return flask_app
