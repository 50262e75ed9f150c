# backend/barberdesk/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate, change_feed


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    change_feed.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Per-session tenant resolvers and the landing-page company counter
    from .services import tenant_service, scarcity_service
    tenant_service.init_app(app)
    scarcity_service.init_app(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.tenant import tenant_bp
    from .routes.units import units_bp
    from .routes.appointments import appointments_bp
    from .routes.history import history_bp
    from .routes.finance import finance_bp
    from .routes.functions import functions_bp
    from .routes.tracking import tracking_bp
    from .routes.admin import admin_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(tenant_bp)
    app.register_blueprint(units_bp)
    app.register_blueprint(appointments_bp)
    app.register_blueprint(history_bp)
    app.register_blueprint(finance_bp)
    app.register_blueprint(functions_bp)
    app.register_blueprint(tracking_bp)
    app.register_blueprint(admin_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
