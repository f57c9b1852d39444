import os
from datetime import timedelta
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


def _env_float(name, default):
    return float(os.environ.get(name, default))


def _env_int(name, default):
    return int(os.environ.get(name, default))


class Config:
    # Basic Flask config - REQUIRE SECRET_KEY in production
    SECRET_KEY = os.environ.get('SECRET_KEY')
    if not SECRET_KEY:
        import secrets
        SECRET_KEY = secrets.token_hex(32)
        print("WARNING: No SECRET_KEY set. Generated temporary key. Set SECRET_KEY environment variable for production!")

    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///cafe.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_recycle': 300,
        'pool_pre_ping': True,
    }

    # Session config
    PERMANENT_SESSION_LIFETIME = timedelta(hours=24)
    SESSION_COOKIE_SECURE = os.environ.get('FLASK_ENV') == 'production'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # Employee portal bearer tokens
    EMPLOYEE_TOKEN_MAX_AGE = _env_int('EMPLOYEE_TOKEN_MAX_AGE', 7 * 24 * 3600)

    # Rate limiting config
    RATELIMIT_STORAGE_URI = "memory://"
    RATELIMIT_DEFAULT = "2000 per day;300 per hour"
    RATELIMIT_HEADERS_ENABLED = True

    # Payment proof uploads
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER', os.path.join(BASE_DIR, 'uploads'))
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024
    PROOF_MAX_BYTES = 5 * 1024 * 1024
    ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'webp'}
    # mimetype -> extension used for the stored file
    ALLOWED_PROOF_MIMETYPES = {
        'image/jpeg': 'jpg',
        'image/jpg': 'jpg',
        'image/png': 'png',
        'image/webp': 'webp',
    }

    # Customer web URL encoded in table QR codes
    CUSTOMER_APP_URL = os.environ.get('CUSTOMER_APP_URL', 'http://localhost:3000')

    # Cafe location for geofenced attendance
    CAFE_NAME = os.environ.get('CAFE_NAME', 'Kopi Teras')
    CAFE_LATITUDE = _env_float('CAFE_LATITUDE', -6.7063803)
    CAFE_LONGITUDE = _env_float('CAFE_LONGITUDE', 108.5619729)
    CAFE_RADIUS_METERS = _env_float('CAFE_RADIUS_METERS', 200)
    CAFE_TIMEZONE = os.environ.get('CAFE_TIMEZONE', 'Asia/Jakarta')

    # Attendance and payroll rules
    LATE_TOLERANCE_MINUTES = 15
    OVERTIME_AUTO_APPROVE_HOURS = 2
    MAX_OVERTIME_HOURS = 12
    DEFAULT_OVERTIME_RATE = 1.5
    LATE_PENALTY = 50000
    ABSENCE_PENALTY = 200000

    # Order pricing
    TAX_RATE = 0.10
    SERVICE_FEE_RATE = 0.05
    MINIMUM_ORDER_TOTAL = 1000
    ESTIMATED_PREPARATION_MINUTES = 30
    TRANSFER_EXPIRY_MINUTES = 60

    # Cash drawer
    STARTING_CASH = 500000
    CASH_VARIANCE_THRESHOLD = 10000

    # Telegram bot
    TELEGRAM_BOT_TOKEN = os.environ.get('TELEGRAM_BOT_TOKEN')
    TELEGRAM_OWNER_CHAT_ID = os.environ.get('TELEGRAM_OWNER_CHAT_ID')

    # Seed owner account
    OWNER_USERNAME = os.environ.get('OWNER_USERNAME', 'owner')
    OWNER_PASSWORD = os.environ.get('OWNER_PASSWORD', 'owner123')


class DevelopmentConfig(Config):
    DEBUG = True
    SESSION_COOKIE_SECURE = False


class ProductionConfig(Config):
    DEBUG = False
    SESSION_COOKIE_SECURE = True
    # More restrictive rate limits for production
    RATELIMIT_DEFAULT = "1000 per day;200 per hour"


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    TELEGRAM_BOT_TOKEN = None


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
