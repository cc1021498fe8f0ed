from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
# No events are pushed; the server only lends its async mode to polling loops
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from live_audience.main import main
    flask_app.register_blueprint(main)

    from live_audience.api.sessions import sessions
    # Mount session routes under /api to match the host and participant clients
    flask_app.register_blueprint(sessions, url_prefix='/api/sessions')

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from live_audience.services.interaction import registry
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            session = registry.create_session(
                'Quarterly Product Quiz',
                'exam',
                required_fields=['name', 'organization'],
            )
            registry.add_question(
                session.id,
                'Which plan includes the inventory module?',
                'multiple-choice',
                options=[{'id': 'A', 'text': 'Starter'}, {'id': 'B', 'text': 'Business'}],
                correct_option_id='B',
                duration=30,
            )
            registry.add_question(
                session.id,
                'How many warehouses can a Business account manage?',
                'multiple-choice',
                options=[{'id': 'A', 'text': 'Unlimited'}, {'id': 'B', 'text': 'Five'}],
                correct_option_id='A',
                duration=30,
            )
            registry.activate(session.id)
            print(f'Database has been reset and seeded! Active session id={session.id}')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
