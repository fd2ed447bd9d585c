from flask import Flask, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

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

    CORS(flask_app, origins=allowed_origins, methods=['GET', 'POST', 'OPTIONS'])

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from souris.services import bitmap
    bitmap.configure_default_executor(flask_app.config.get('BITMAP_WORKERS', 2))

    # Import and register blueprints here
    from souris.main import main
    flask_app.register_blueprint(main)

    from souris.api.records import records
    flask_app.register_blueprint(records, url_prefix='/api/records')

    from souris.api.circuits import circuits
    flask_app.register_blueprint(circuits, url_prefix='/api/circuits')

    @flask_app.errorhandler(404)
    def not_found(exc):
        return jsonify({'error': 'Not found', 'message': 'The requested resource does not exist'}), 404

    @flask_app.errorhandler(405)
    def method_not_allowed(exc):
        return jsonify({
            'error': 'Method not allowed',
            'message': 'Only the GET, POST and OPTIONS methods are allowed',
        }), 405

    # Register Socket.IO event handlers
    from souris.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('records-reset')
    @click.argument('circuit', type=int)
    def records_reset_command(circuit):
        """Clears the leaderboard of a circuit."""
        from souris.services.leaderboard import Leaderboard
        with flask_app.app_context():
            if Leaderboard.from_app(flask_app).reset(circuit):
                click.echo(f'Records of circuit {circuit} have been reset!')
            else:
                click.echo(f'Circuit {circuit} has no records.')

    flask_app.cli.add_command(records_reset_command)

    return flask_app
