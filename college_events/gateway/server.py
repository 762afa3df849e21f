"""
API gateway: combines the auth and events blueprints into one Flask app.
This is the local entrypoint for development.
"""

import logging
from typing import Optional

import psycopg2
from flask import Flask, jsonify
from flask_cors import CORS

from college_events.auth_service.routes import auth_bp
from college_events.config import Settings
from college_events.database.db_connection import Database, get_db
from college_events.database.init_db import register_cli
from college_events.errors import InternalError, register_error_handlers
from college_events.events_service.routes import events_bp


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> Flask:
    """
    Application factory for creating the Flask app.

    Args:
        settings (Settings, optional): Defaults to Settings.from_env().
        database (Database, optional): Defaults to a pool built from settings.

    Returns:
        Flask: The configured Flask application.
    """
    settings = settings or Settings.from_env()
    database = database or Database.from_settings(settings)

    if settings.uses_insecure_secret:
        if settings.is_production:
            raise RuntimeError("Refusing to start in production with the development JWT secret")
        logging.warning("[Gateway] Running with the development JWT secret; tokens are not secure")

    app = Flask(__name__)
    app.extensions["college_events.settings"] = settings
    app.extensions["college_events.db"] = database

    CORS(app, resources={
        r"/*": {
            "origins": list(settings.cors_origins),
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
        }
    })

    # --- REGISTER BLUEPRINTS ---
    app.register_blueprint(auth_bp, url_prefix="/api")
    app.register_blueprint(events_bp, url_prefix="/api")
    register_error_handlers(app)
    register_cli(app)
    logging.info("[Gateway] All blueprints registered successfully.")

    # --- BASIC HEALTH CHECKPOINTS ---
    @app.route("/health")
    def health():
        """
        Health check endpoint.
        """
        return jsonify({"status": "ok"}), 200

    @app.route("/api/test")
    def database_check():
        """
        Round-trip a trivial query to confirm the database is reachable.
        """
        try:
            with get_db() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1 + 1 AS solution;")
                    row = cur.fetchone()
        except psycopg2.Error:
            logging.exception("[Gateway] Database connection check failed")
            raise InternalError("Database connection failed")

        return jsonify({"message": "Database connected!", "result": row["solution"]}), 200

    return app


def main() -> None:
    settings = Settings.from_env()

    # Basic console logging during API requests
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="[%(levelname)s] %(asctime)s - %(message)s",
    )

    app = create_app(settings)
    logging.info(f"[Gateway] Server running on http://localhost:{settings.port}")
    app.run(host="0.0.0.0", port=settings.port, debug=not settings.is_production, threaded=True)


if __name__ == "__main__":
    main()
