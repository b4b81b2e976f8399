from __future__ import annotations

from flask import Flask
from flask_cors import CORS

from tabby.api.routes import api_bp
from tabby.config import Config
from tabby.logging import configure_logging


def create_app() -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    configure_logging(app.config["LOG_LEVEL"], json=app.config["LOG_JSON"])
    CORS(app, origins=app.config["CORS_ORIGINS"])

    app.register_blueprint(api_bp)
    return app
