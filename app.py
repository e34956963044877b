import logging

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from extensions import db, login_manager, migrate

# Route Imports
from routes.auth_routes import auth_bp
from routes.mark_routes import mark_bp

# Model Imports
from models import Mark, User  # noqa: F401

from services.auth_service import load_user_from_token
from utils.errors import GradingError, Unauthorized
from utils.seed_data import register_commands

load_dotenv()


def configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )
    app.logger.setLevel(level)


def register_error_handlers(app):
    @app.errorhandler(GradingError)
    def handle_grading_error(exc):
        if exc.status_code >= 500:
            app.logger.error("%s on %s %s: %s", exc.code, request.method, request.path, exc.message)
        elif isinstance(exc, Unauthorized):
            app.logger.warning("%s on %s %s: %s", exc.code, request.method, request.path, exc.message)
        else:
            app.logger.info("%s on %s %s: %s", exc.code, request.method, request.path, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        if not request.path.startswith("/api"):
            return exc
        return jsonify({"success": False, "message": exc.description, "error": exc.name}), exc.code


def create_app(config_object="config.config.Config"):
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app)

    # Initialize Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.request_loader
    def load_user_from_request(req):
        header = req.headers.get("Authorization", "")
        if not header.startswith("Bearer "):
            return None
        return load_user_from_token(header[len("Bearer "):].strip())

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"success": False, "message": "Authentication required", "error": "UNAUTHENTICATED"}), 401

    # Register Blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(mark_bp)

    register_error_handlers(app)
    register_commands(app)

    @app.route("/")
    def index():
        return jsonify({
            "message": "School marks API",
            "endpoints": {
                "auth": "/api/auth",
                "marks": "/api/marks",
            }
        })

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=5000, debug=True)
