"""Blueprint registration helper."""

from __future__ import annotations

from flask import Flask, jsonify

from .certificates import bp as certificates_bp


def register_routes(app: Flask) -> None:
    """Register all application blueprints on the provided Flask app."""
    app.register_blueprint(certificates_bp)

    @app.get("/")
    def index():
        return jsonify(message="Certificate share API"), 200
