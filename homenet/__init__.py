import os
import logging
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from .config import CONFIGS, ProdConfig

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()


def create_app(config_name: str | None = None) -> Flask:
    """Application factory with environment based configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)
    os.makedirs(app.instance_path, exist_ok=True)

    # Pick configuration
    env = config_name or os.getenv('ENV') or os.getenv('FLASK_ENV') or 'production'
    app.config.from_object(CONFIGS.get(env, ProdConfig))

    # Initialise logging
    logging.basicConfig(level=logging.DEBUG if app.debug else logging.INFO)

    db.init_app(app)
    migrate.init_app(app, db)

    # Ensure models loaded so tables can be created
    from homenet import models  # noqa
    with app.app_context():
        db.create_all()

    _register_error_handlers(app)

    from homenet.quotes.routes import bp as quotes_bp
    from homenet.consultations.routes import bp as consultations_bp
    from homenet.scheduling.routes import bp as scheduling_bp
    from homenet.estimates.routes import bp as estimates_bp
    from homenet.auth.routes import bp as auth_bp
    from homenet.admin.routes import bp as admin_bp
    from homenet.cli import create_admin_command, seed_cost_items_command

    app.register_blueprint(quotes_bp, url_prefix='/api/quotes')
    app.register_blueprint(consultations_bp, url_prefix='/api/consultations')
    app.register_blueprint(scheduling_bp, url_prefix='/api/scheduling')
    app.register_blueprint(estimates_bp, url_prefix='/api/estimates')
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.cli.add_command(create_admin_command)
    app.cli.add_command(seed_cost_items_command)

    return app


def _register_error_handlers(app: Flask) -> None:
    from homenet.errors import ApiError

    @app.errorhandler(ApiError)
    def api_error(err):
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(HTTPException)
    def http_error(err):
        return jsonify(error=err.description), err.code

    @app.errorhandler(500)
    def server_error(err):
        db.session.rollback()
        app.logger.error('Unhandled error: %s', getattr(err, 'original_exception', err))
        return jsonify(error='Internal server error'), 500
