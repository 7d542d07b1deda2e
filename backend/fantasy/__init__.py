from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import json
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from fantasy.main import main
    flask_app.register_blueprint(main)

    from fantasy.api.matches import matches
    flask_app.register_blueprint(matches, url_prefix='/api/matches')

    from fantasy.api.contests import contests
    flask_app.register_blueprint(contests, url_prefix='/api')

    from fantasy.api.admin import admin
    flask_app.register_blueprint(admin, url_prefix='/api/admin')

    from fantasy.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from fantasy.errors import FantasyError

    @flask_app.errorhandler(FantasyError)
    def handle_fantasy_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    from fantasy.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Unauthorized'}), 401

    _register_cli(flask_app)

    from fantasy.services.contests.scheduler import start_contest_sweeper
    start_contest_sweeper(flask_app)

    return flask_app


def _register_cli(flask_app):
    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from fantasy.models import User
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            admin = User(email='admin@example.com', display_name='admin', role='admin')
            admin.set_password('password')
            db.session.add(admin)
            for name in ['viewer1', 'viewer2']:
                user = User(email=f'{name}@example.com', display_name=name)
                user.set_password('password')
                db.session.add(user)

            db.session.commit()
            click.echo('Database has been reset and seeded!')

    @click.command('seed-league')
    @click.argument('path', type=click.Path(exists=True, dir_okay=False))
    def seed_league_command(path):
        """Replaces all league teams with the teams listed in a JSON file."""
        from fantasy.models import LeagueTeam
        with open(path, encoding='utf-8') as fh:
            teams = json.load(fh)
        with flask_app.app_context():
            LeagueTeam.query.delete()
            for t in teams:
                db.session.add(LeagueTeam.from_dict(t))
            db.session.commit()
            click.echo(f'Inserted teams: {len(teams)}')

    @click.command('close-contests')
    def close_contests_command():
        """Closes and archives contests whose deadline has passed."""
        from fantasy.services.contests.scheduler import close_expired_contests
        from fantasy.services.scoring.notify import SocketIONotifier
        with flask_app.app_context():
            closed = close_expired_contests(notifier=SocketIONotifier())
            click.echo(f'Closed contests: {len(closed)}')

    @click.command('recompute-season')
    def recompute_season_command():
        """Rebuilds the season standings snapshot."""
        from fantasy.services.scoring.recompute import compute_season_leaderboard
        with flask_app.app_context():
            board = compute_season_leaderboard(write_snapshot=True)
            for row in board:
                click.echo(f"{row['rank']:>3}  {row['viewer_name']:<24} {row['total_points']}")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(seed_league_command)
    flask_app.cli.add_command(close_contests_command)
    flask_app.cli.add_command(recompute_season_command)
