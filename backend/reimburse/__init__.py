from flask import Flask, current_app
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging

from .config.settings import load_settings
from .config.uploads import MAX_REQUEST_BYTES

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _error_payload(status: int, title: str, detail: str, kind: str):
    return {
        'error': {
            'status': status,
            'title': title,
            'detail': detail,
            'kind': kind,
        }
    }


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config.update(load_settings())
    app.config['MAX_CONTENT_LENGTH'] = MAX_REQUEST_BYTES

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    logging.basicConfig(level=app.config['LOG_LEVEL'], format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True, pool_pre_ping=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    @app.teardown_appcontext
    def remove_session(exc):
        # Discards (rolls back) anything the request did not commit
        if SessionLocal is not None:
            SessionLocal.remove()

    jwt.init_app(app)
    _register_jwt_callbacks()

    CORS(
        app,
        origins=[app.config['CORS_ORIGIN']],
        supports_credentials=True,
        allow_headers=['origin', 'content-type', 'accept', 'authorization', 'x-requested-with'],
        methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS', 'PATCH'],
        max_age=3600,
    )

    # External collaborators are process-wide; engines look them up per call
    from .services.dms import DmsGateway
    from .services.idp import IdpGateway
    app.extensions['dms'] = DmsGateway.from_config(app.config)
    app.extensions['idp'] = IdpGateway.from_config(app.config)

    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.folders import folders_bp
    from .routes.review import review_bp
    from .routes.purchases import purchases_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(folders_bp, url_prefix='/api/users')  # folders are scoped under their owner
    app.register_blueprint(review_bp, url_prefix='/api/folders')
    app.register_blueprint(purchases_bp, url_prefix='/api/purchases')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if SessionLocal is not None:
            SessionLocal().rollback()
        if isinstance(e, HTTPException):
            status = e.code or 500
            kind = getattr(e, 'kind', None)
            if status == 413:
                # Oversized uploads are a plain validation failure for clients
                return _error_payload(400, 'Bad Request', 'File size exceeds 10MB limit', 'VALIDATION'), 400
            if kind == 'UPSTREAM':
                app.logger.error('Upstream failure: %s', e.description)
            if kind is None:
                kind = 'INTERNAL' if status >= 500 else ('UNAUTH' if status == 401 else ('AUTHZ' if status == 403 else ('NOT_FOUND' if status == 404 else 'VALIDATION')))
            return _error_payload(status, e.name, e.description, kind), status
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return _error_payload(500, 'Internal Server Error', 'Unexpected error', 'INTERNAL'), 500

    return app


def _register_jwt_callbacks():
    @jwt.unauthorized_loader
    def missing_token(reason):
        return _error_payload(401, 'Unauthorized', reason, 'UNAUTH'), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return _error_payload(401, 'Unauthorized', reason, 'UNAUTH'), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return _error_payload(401, 'Unauthorized', 'Token has expired', 'UNAUTH'), 401


def get_db():
    return SessionLocal()


def get_dms():
    return current_app.extensions['dms']


def get_idp():
    return current_app.extensions['idp']
