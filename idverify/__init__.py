from flask import Flask, flash
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_migrate import Migrate
import logging
import os
from dotenv import load_dotenv

load_dotenv()

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()


def create_app(config=None):
    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL') or 'sqlite:///idverify.db'
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max upload

    # Record store backend: "local" (SQL key-value slot) or "firestore"
    app.config['RECORD_STORE'] = os.environ.get('RECORD_STORE', 'local').lower()
    app.config['FIRESTORE_PROJECT_ID'] = os.environ.get('FIRESTORE_PROJECT_ID')
    app.config['FIRESTORE_CREDENTIALS'] = os.environ.get('FIRESTORE_CREDENTIALS')  # service account JSON path
    app.config['FIRESTORE_DATABASE'] = os.environ.get('FIRESTORE_DATABASE', '(default)')
    app.config['FIRESTORE_TIMEOUT'] = float(os.environ.get('FIRESTORE_TIMEOUT', 10))

    # Verification
    app.config['BASE_URL'] = os.environ.get('BASE_URL')
    app.config['ADVISOR'] = os.environ.get('ADVISOR', '').lower()  # gemini, local or none
    app.config['GEMINI_API_KEY'] = os.environ.get('GEMINI_API_KEY')
    app.config['GEMINI_MODEL'] = os.environ.get('GEMINI_MODEL', 'gemini-2.0-flash')
    app.config['ADVISOR_TIMEOUT'] = float(os.environ.get('ADVISOR_TIMEOUT', 8))

    # Editor / import defaults
    app.config['DEFAULT_VALID_TILL'] = os.environ.get('DEFAULT_VALID_TILL', '2025-12-31')
    app.config['PHOTO_MAX_WIDTH'] = int(os.environ.get('PHOTO_MAX_WIDTH', 800))
    app.config['PHOTO_MAX_BYTES'] = int(os.environ.get('PHOTO_MAX_BYTES', 300000))
    app.config['QR_DOWNLOAD_SIZE'] = int(os.environ.get('QR_DOWNLOAD_SIZE', 1024))
    app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO').upper()

    if config:
        app.config.update(config)

    logging.basicConfig(level=app.config['LOG_LEVEL'])
    app.logger.setLevel(app.config['LOG_LEVEL'])

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)

    # Create tables
    from idverify import models  # noqa: F401  register StoreSlot
    with app.app_context():
        db.create_all()

    # Configure login manager
    login_manager.login_view = 'auth.login'
    login_manager.login_message = 'Please log in to access this page.'
    login_manager.login_message_category = 'info'

    # Record store and advisor are chosen once, here
    from idverify.storage import build_store
    from idverify.advisor import build_advisor
    app.extensions['record_store'] = build_store(app.config)
    app.extensions['security_advisor'] = build_advisor(app.config)

    from idverify.errors import StoreError
    from idverify.models import AdminSession
    from idverify.storage import get_store

    @login_manager.user_loader
    def load_user(session_id):
        session = AdminSession.from_session_id(session_id)
        try:
            settings = get_store().get_admin_settings()
        except StoreError as e:
            app.logger.error(f"Could not verify admin session: {e}")
            flash('Could not verify your session. Please try again.', 'error')
            return None
        if not session.matches(settings):
            return None
        return session

    # Register blueprints
    from idverify.routes.main import main_bp
    from idverify.routes.auth import auth_bp
    from idverify.routes.admin import admin_bp
    from idverify.routes.verification import verification_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(verification_bp)

    return app
