import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO()

logger = logging.getLogger(__name__)


def create_app(config_class=None, blob_store=None):
    from .config import Config
    from .errors import register_error_handlers
    from .notifications import NotificationDispatcher, SocketIOChannelSender
    from .presence import PresenceDirectory
    from .storage import GCSBlobStore

    app = Flask(__name__)
    app.config.from_object(config_class or Config)
    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    origins = [app.config["FRONTEND_URL"], "http://localhost:3000"]
    CORS(app, resources={
        r"/api/*": {
            "origins": origins,
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Authorization", "Content-Type"],
            "supports_credentials": True
        }
    })

    # declares the socket handlers; must precede socketio.init_app
    from .channels import ChannelManager

    db.init_app(app)
    migrate.init_app(app, db)
    socketio.init_app(app, cors_allowed_origins=origins, async_mode=app.config["SOCKETIO_ASYNC_MODE"])

    from . import models  # noqa: F401
    from .auth import auth_bp
    from .habits import habits_bp
    from .proofs import proofs_bp

    presence = PresenceDirectory()
    app.extensions["habitproof.presence"] = presence
    app.extensions["habitproof.channels"] = ChannelManager(presence)
    app.extensions["habitproof.dispatcher"] = NotificationDispatcher(presence, SocketIOChannelSender(socketio))
    app.extensions["habitproof.blob_store"] = blob_store or GCSBlobStore(
        app.config["STORAGE_BUCKET"], app.config["GOOGLE_APPLICATION_CREDENTIALS"]
    )

    app.register_blueprint(auth_bp)
    app.register_blueprint(habits_bp)
    app.register_blueprint(proofs_bp)
    register_error_handlers(app)

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok"}), 200

    with app.app_context():
        db.create_all()

    logger.info("HabitProof app created")
    return app


def run():
    app = create_app()
    socketio.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 5000)), allow_unsafe_werkzeug=True)
