# vehicle_webhook/__init__.py
import logging
from typing import Any, Mapping, Optional

from flask import Flask

from .config import Config
from .extensions import db


def create_app(config_overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    logging.basicConfig(level=logging.INFO)

    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize database
    db.init_app(app)
    with app.app_context():
        from . import models  # noqa: F401
        db.create_all()

    from .app import bp as main_bp
    app.register_blueprint(main_bp)

    return app
