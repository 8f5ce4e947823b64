import os
import click
from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from werkzeug.exceptions import HTTPException
from config import Config
from extensions import db, login_manager, init_extensions
from ledger.errors import LedgerError
from ledger.gateway import FlutterwaveClient
from logger import configure_app_logging


# --------------------------------------------------------------------------------------------------------
#       Application factory
# --------------------------------------------------------------------------------------------------------
def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    if not app.config.get("SECRET_KEY"):
        raise ValueError("SECRET_KEY must be set")

    if not app.debug and not app.testing:
        app.config.update(
            SESSION_COOKIE_SECURE=True,
            REMEMBER_COOKIE_SECURE=True,
        )

    configure_app_logging(app)

    # ----------------------------------------------------------------------------------------------------------------------------------
    # SQLite needs its instance folder
    # ----------------------------------------------------------------------------------------------------------------------------------
    database_uri = app.config["SQLALCHEMY_DATABASE_URI"]
    if database_uri.startswith("sqlite:///") and ":memory:" not in database_uri:
        os.makedirs(os.path.dirname(database_uri.replace("sqlite:///", "", 1)) or ".", exist_ok=True)

    # --------------------------------------------------------------------------------------------------------------------------
    # Initialize extensions
    # ----------------------------------------------------------------------------------------------------------------------------
    init_extensions(app)
    app.extensions["payment_gateway"] = FlutterwaveClient.from_config(app.config)

    register_blueprints(app)
    register_error_handlers(app)
    register_commands(app)

    # ------------------------------------------------------------------------------------------------------------------------
    # Flask-Login user_loader - inside create_app to avoid circular imports
    # ------------------------------------------------------------------------------------------------------------------------
    from models import User

    @login_manager.user_loader
    def load_user(user_id):
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"success": False, "error": "unauthorized", "message": "Login required"}), 401

    app.logger.info(f"{app.config.get('SITE_NAME')} app created ({app.config.get('FLASK_ENV')})")
    return app


# ------------------------------------------------------------------------------------------------------------------------
# Register blueprints
# -----------------------------------------------------------------------------------------------------------------------
def register_blueprints(app):
    from blueprints.auth import bp as auth_bp
    from blueprints.profile import bp as profile_bp
    from blueprints.admin import admin_bp as admin_bp
    from blueprints.payments import bp as payment_bp
    from blueprints.packages import bp as packages_bp
    from blueprints.ads import bp as ads_bp
    from blueprints.withdraw import bp as withdraw_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(payment_bp)
    app.register_blueprint(packages_bp)
    app.register_blueprint(ads_bp)
    app.register_blueprint(withdraw_bp)


# ------------------------------------------------------------------------------------------------------------------------
# Error handlers: every failure is JSON, persistence errors never leak partial state
# -----------------------------------------------------------------------------------------------------------------------
def register_error_handlers(app):

    @app.errorhandler(LedgerError)
    def handle_ledger_error(error):
        if error.status_code >= 500:
            app.logger.error(f"{error.code}: {error.message} {error.details}")
        else:
            app.logger.info(f"Request rejected: {error.code} ({error.message})")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(error):
        db.session.rollback()
        app.logger.error(f"Database error: {error}", exc_info=True)
        return jsonify({"success": False, "error": "server_error", "message": "Server error"}), 500

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        if error.code is None or error.code < 400:
            return error.get_response()
        return jsonify({"success": False, "error": error.name.lower().replace(" ", "_"),
                        "message": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        app.logger.error(f"Unhandled error: {error}", exc_info=True)
        return jsonify({"success": False, "error": "server_error", "message": "Server error"}), 500


# ------------------------------------------------------------------------------------------------------------------------
# CLI: flask init-db / flask create-admin
# -----------------------------------------------------------------------------------------------------------------------
def register_commands(app):

    @app.cli.command("init-db")
    def init_db():
        """Create tables (outside migrations) and seed the promo counter."""
        from ledger.promo import PromoCounter
        db.create_all()
        promo = PromoCounter.ensure()
        click.echo(f"Database ready; promo {promo.used}/{promo.limit}")

    @app.cli.command("create-admin")
    @click.argument("email")
    @click.option("--name", default="Administrator")
    @click.option("--password", default=None, help="Only used when the user has to be created.")
    def create_admin(email, name, password):
        """Promote EMAIL to admin, creating the account if it does not exist."""
        from models import User
        from ledger.referrals import generate_referral_code
        from ledger.stores import UserStore

        user = UserStore.get_by_email(email)
        if user:
            click.echo(f"Found user id={user.id}, email={user.email}. Promoting to admin...")
        else:
            if not password:
                raise click.UsageError("--password is required to create a new admin")
            user = User(
                name=name,
                email=email.strip().lower(),
                referral_code=generate_referral_code(email),
            )
            user.set_password(password)
            db.session.add(user)

        user.role = "admin"
        try:
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            raise click.ClickException(f"Could not save admin {email}: {e}")
        click.echo(f"User (id={user.id}, email={user.email}) is now admin.")
