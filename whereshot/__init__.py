"""Flask application factory module.

Provides create_app() factory function following Flask best practices.
Creates and configures the application with storage setup.
"""
import logging

from flask import Flask


def ensure_directories(app):
    """Create storage directories if they don't exist.

    Args:
        app: Flask application instance with config loaded
    """
    app.config['UPLOAD_FOLDER'].mkdir(parents=True, exist_ok=True)


def create_app(config_name='development'):
    """Application factory function.

    Args:
        config_name: Configuration environment ('development', 'production'
                     or 'testing')

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    # Load configuration
    from config import config as config_dict
    config_class = config_dict[config_name]
    app.config.from_object(config_class)

    # Validate log level before anything logs
    config_class.validate_log_level()
    logging.getLogger('whereshot').setLevel(app.config['LOG_LEVEL'])

    ensure_directories(app)

    from whereshot.routes import api_bp
    app.register_blueprint(api_bp)

    return app
