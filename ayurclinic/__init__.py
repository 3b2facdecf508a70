from flask import jsonify, request
from flask_openapi3 import OpenAPI, Info
from flask_cors import CORS
from decouple import config
from datetime import timedelta
import urllib.parse
from dotenv import load_dotenv
import logging

from ayurclinic.addons.extensions import db, jwt, bcrypt
from ayurclinic.addons.functions import error_response

from ayurclinic.controllers.auth.authentication import auth_bp
from ayurclinic.controllers.staff.staff import staff_bp
from ayurclinic.controllers.leave.leave_records import leave_bp
from ayurclinic.controllers.leave.my_leaves import my_leaves_bp
from ayurclinic.controllers.attendance.attendance import attendance_bp
from ayurclinic.controllers.payroll.payroll_management import payroll_bp
from ayurclinic.controllers.billing.expenses import expense_bp
from ayurclinic.controllers.diet.diet_templates import diet_bp

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

BLUEPRINTS = (
    auth_bp,
    staff_bp,
    leave_bp,
    my_leaves_bp,
    attendance_bp,
    payroll_bp,
    expense_bp,
    diet_bp,
)

ENDPOINTS = {
    "authentication": "/api/auth",
    "staff": "/api/staff",
    "leaves": "/api/staff/leaves",
    "my_leaves": "/api/staff/my-leaves",
    "attendance": "/api/staff/attendance",
    "payroll": "/api/staff/payroll",
    "expenses": "/api/billing/expenses",
    "diet": "/api/diet/templates",
}


def _flag(value):
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def database_uri():
    """DATABASE_URL when set, else a MySQL URI built from the DB_* settings."""
    url = config('DATABASE_URL', default='')
    if url:
        return url

    db_user = config('DB_USERNAME', default='root')
    db_password = urllib.parse.quote_plus(config('DB_PASSWORD', default='password'))
    db_host = config('DB_HOST', default='localhost')
    db_port = config('DB_PORT', default='3306')
    db_name = config('DB_NAME', default='ayurclinic')
    return f'mysql+pymysql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}'


def configure_logging(log_file):
    log_format = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    if log_file:
        logging.basicConfig(filename=log_file, level=logging.DEBUG, format=log_format, force=True)
    else:
        logging.basicConfig(level=logging.INFO, format=log_format)


def load_settings(app, overrides):
    """Populate app.config from the environment, then apply `overrides`."""
    app.config['SQLALCHEMY_DATABASE_URI'] = database_uri()
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
        'pool_pre_ping': True,
        'pool_recycle': 3600,
    }

    app.secret_key = config("SECRET_KEY", default="change-this-secret-key")
    app.config["JWT_SECRET_KEY"] = config("JWT_SECRET_KEY", default=app.secret_key)
    app.config["JWT_TOKEN_LOCATION"] = ["headers"]
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(minutes=config('JWT_ACCESS_MINUTES', default=60, cast=int))
    app.config["JWT_ALGORITHM"] = "HS256"
    app.config["JWT_HEADER_NAME"] = "Authorization"
    app.config["JWT_HEADER_TYPE"] = "Bearer"

    app.config['ENVIRONMENT'] = config('ENVIRONMENT', default='Development')
    app.config['LOG_FILE'] = config('LOG_FILE', default='app.log')
    app.config['RECREATE_DB'] = _flag(config('RECREATE_DB', default='false'))
    app.config['SKIP_DB_BOOTSTRAP'] = _flag(config('SKIP_DB_BOOTSTRAP', default='false'))
    app.config['LEAVE_AUTO_APPROVE_HOURS'] = config('LEAVE_AUTO_APPROVE_HOURS', default=24, cast=int)
    app.config['DEFAULT_CLINIC_CODE'] = config('DEFAULT_CLINIC_CODE', default='MAIN')
    app.config['ADMIN_EMAIL'] = config('ADMIN_EMAIL', default='admin@ayurclinic.in')
    app.config['ADMIN_PASSWORD'] = config('ADMIN_PASSWORD', default='admin12345')

    app.config.update(overrides)


def validation_error_response(e):
    """400 `{status, error}` for request data the pydantic schemas reject."""
    first = e.errors()[0] if e.errors() else {}
    field = ".".join(str(loc) for loc in first.get('loc', ())) or 'request body'
    logger.debug(f"Request validation failed: {e.errors()}")
    return error_response(f"Invalid {field}: {first.get('msg', 'validation error')}", 400)


def register_jwt_handlers():
    """Blocklist lookup and JSON bodies for every 401 the JWT layer raises."""

    @jwt.token_in_blocklist_loader
    def token_revoked(jwt_header, jwt_payload):
        from ayurclinic.models import TokenBlacklist

        jti = jwt_payload.get("jti")
        if not jti:
            logger.warning("Access token without a jti claim")
            return False
        return TokenBlacklist.is_revoked(jti)

    @jwt.unauthorized_loader
    def missing_token(reason):
        return error_response(reason, 401)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return error_response(reason, 401)

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return error_response('Token has expired', 401)

    @jwt.revoked_token_loader
    def revoked_token(jwt_header, jwt_payload):
        return error_response('Token has been revoked', 401)


def register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(error):
        return error_response("The requested resource was not found", 404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return error_response("The method is not allowed for this request", 405)

    @app.errorhandler(500)
    def internal_server_error(error):
        logger.error(f"Unhandled server error: {error}")
        return error_response("An internal server error occurred", 500)


def register_service_routes(app):
    @app.before_request
    def log_request():
        logger.debug(f"Method: {request.method} Path: {request.path}")

    @app.after_request
    def log_response(response):
        logger.debug(f"Response: {response.status_code} {request.method} {request.path}")
        return response

    @app.route("/", methods=["GET"])
    def home():
        """API index"""
        return jsonify({
            "message": "Welcome to the Ayurclinic Staff & Operations API!",
            "version": API_VERSION,
            "status": "online",
            "endpoints": ENDPOINTS,
        })

    @app.route("/health", methods=["GET"])
    def health_check():
        """Liveness plus a database ping"""
        from sqlalchemy import text

        try:
            db.session.execute(text('SELECT 1'))
            database = "healthy"
        except Exception as e:
            logger.error(f"Database ping failed: {e}")
            database = "unhealthy"

        return jsonify({
            "status": "online",
            "database": database,
            "environment": app.config['ENVIRONMENT'],
        })


def create_app(test_config=None):
    """
    Build the Flask application.

    `test_config` overrides any setting read from the environment.
    """
    load_dotenv()

    # models must be imported before db.init_app()
    from ayurclinic import models  # noqa: F401

    app = OpenAPI(
        __name__,
        info=Info(
            title="Ayurclinic Staff & Operations API",
            version=API_VERSION,
            description="Leave, attendance, payroll and expense management for Ayurvedic clinics"
        ),
        security_schemes={
            "jwt": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"},
        },
        validation_error_status=400,
        validation_error_callback=validation_error_response,
    )
    CORS(app)

    load_settings(app, test_config or {})
    configure_logging(app.config['LOG_FILE'])
    if app.config['ENVIRONMENT'] == "Development":
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    db.init_app(app)
    bcrypt.init_app(app)
    jwt.init_app(app)

    register_jwt_handlers()
    register_error_handlers(app)
    register_service_routes(app)

    for blueprint in BLUEPRINTS:
        app.register_api(blueprint)

    if not app.config['SKIP_DB_BOOTSTRAP']:
        with app.app_context():
            bootstrap_database(app)

    return app


def bootstrap_database(app):
    """Create missing tables and seed the default clinic and administrator."""
    from sqlalchemy import inspect, text
    from ayurclinic.models import Clinic, User

    db.session.execute(text('SELECT 1'))
    db.session.commit()

    if app.config['RECREATE_DB']:
        logger.warning("RECREATE_DB is set: dropping all tables")
        db.drop_all()
        db.create_all()
    else:
        existing = set(inspect(db.engine).get_table_names())
        missing = [table for table in db.metadata.tables if table not in existing]
        if missing:
            logger.info(f"Creating tables: {missing}")
            db.create_all()

    try:
        clinic = Clinic.query.filter_by(code=app.config['DEFAULT_CLINIC_CODE']).first()
        if not clinic:
            clinic = Clinic(name="Main Clinic", code=app.config['DEFAULT_CLINIC_CODE'], status="Active")
            db.session.add(clinic)
            db.session.flush()
            logger.info(f"Created default clinic '{clinic.code}'")

        if not User.query.filter_by(email=app.config['ADMIN_EMAIL']).first():
            admin = User(
                email=app.config['ADMIN_EMAIL'],
                name='Clinic Administrator',
                role='ADMIN',
                clinic_id=clinic.id,
                is_active=True,
            )
            admin.set_password(app.config['ADMIN_PASSWORD'])
            db.session.add(admin)
            logger.info(f"Created administrator {admin.email}")

        db.session.commit()
    except Exception:
        # the app still serves requests without seed data
        logger.exception("Seeding the default clinic failed")
        db.session.rollback()
