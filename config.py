# ==========================================================================================================
# -------------- Configuration file for the HIGHTECH Flask application -------------------------------------
# ==========================================================================================================
import os
from dotenv import load_dotenv


if os.environ.get("FLASK_ENV") != "production":
    load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name, default="False"):
    return os.getenv(name, default).lower() in ("true", "1", "t")


class Config:

    SECRET_KEY = os.getenv("SECRET_KEY")

    FLASK_ENV = os.getenv("FLASK_ENV", "production")
    DEBUG = _env_bool("DEBUG")
    TESTING = False

    _database_url = os.getenv("DATABASE_URL")
    if not _database_url:
        _database_url = f"sqlite:///{os.path.join(basedir, 'instance', 'hightech.db')}"

    if _database_url.startswith("postgres://"):
        _database_url = _database_url.replace("postgres://", "postgresql+pg8000://", 1)

    SQLALCHEMY_DATABASE_URI = _database_url
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }
    if not _database_url.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS.update({"pool_size": 10, "max_overflow": 20})

    # Flutterwave
    FLW_SECRET_KEY = os.getenv("FLW_SECRET_KEY")
    FLW_BASE_URL = os.getenv("FLW_BASE_URL", "https://api.flutterwave.com/v3")
    PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "NGN")
    PAYMENT_TITLE = os.getenv("PAYMENT_TITLE", "HIGHTECH Deposit")
    REQUEST_TIMEOUT_SECONDS = int(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))

    FRONTEND_URL = os.getenv("FRONTEND_URL", "https://hightechemp.site")
    BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:10000")

    SITE_NAME = os.getenv("SITE_NAME", "HIGHTECH")
    PROMO_LIMIT = int(os.getenv("PROMO_LIMIT", "300"))
    REFERRAL_BONUS_EVERY_SUBSCRIPTION = _env_bool("REFERRAL_BONUS_EVERY_SUBSCRIPTION", "True")

    # Admin access
    ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
    ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN")

    # Flask-Mail
    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", "True")
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", os.getenv("MAIL_USERNAME"))
    MAIL_ASYNC = _env_bool("MAIL_ASYNC", "True")

    LOG_DIR = os.getenv("LOG_DIR", "logs")

    SESSION_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_HTTPONLY = True


class TestingConfig(Config):
    TESTING = True
    DEBUG = False
    SECRET_KEY = "testing-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    FLW_SECRET_KEY = "FLWSECK_TEST-dummy"
    FRONTEND_URL = "https://front.test"
    BACKEND_URL = "https://back.test"
    PROMO_LIMIT = 3
    ADMIN_EMAIL = "ops@hightech.test"
    ADMIN_API_TOKEN = "admin-test-token"
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = "noreply@hightech.test"
    MAIL_ASYNC = False
    REFERRAL_BONUS_EVERY_SUBSCRIPTION = True
