# Main Flask app
import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from config import config
from errors import SocialError
from extensions import bcrypt, jwt, limiter, mail
from models import db
from routes import auth_bp, comments_bp, follow_bp, otp_bp, posts_bp, profile_bp

logger = logging.getLogger(__name__)


def register_error_handlers(app):
    @app.errorhandler(SocialError)
    def handle_social_error(e):
        if e.status_code >= 500:
            db.session.rollback()
        return jsonify({"error": e.message}), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        db.session.rollback()
        logger.exception("Unhandled error: %s", e)
        return jsonify({"error": "Internal Server Error"}), 500


def create_app(config_name='default'):
    app = Flask(__name__)
    app.config.from_object(config[config_name])

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    # Initialize extensions
    db.init_app(app)
    bcrypt.init_app(app)
    jwt.init_app(app)
    mail.init_app(app)
    limiter.init_app(app)

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(otp_bp, url_prefix='/otp')
    app.register_blueprint(posts_bp, url_prefix='/posts')
    app.register_blueprint(comments_bp, url_prefix='/comments')
    app.register_blueprint(follow_bp)
    app.register_blueprint(profile_bp, url_prefix='/profile')

    register_error_handlers(app)

    with app.app_context():
        db.create_all()

    return app
