"""Flask application setup and blueprint wiring."""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS
from pymongo.errors import PyMongoError

from certshare import database
from certshare.routes import register_routes


def create_app() -> Flask:
    """Configure and return the Flask application instance."""
    app = Flask(__name__)
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    register_routes(app)

    if database.mongodb_enabled():
        try:
            database.create_indexes()
            app.logger.info("MongoDB indexes created successfully")
        except PyMongoError as e:
            app.logger.warning(f"Failed to create MongoDB indexes: {e}")

    return app


app = create_app()
