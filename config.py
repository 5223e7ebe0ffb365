# Configuration for the Hotel Management API
import os
import secrets
from datetime import timedelta

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _database_url():
    """Normalize DATABASE_URL for SQLAlchemy + psycopg3"""
    url = os.environ.get('DATABASE_URL')
    if url:
        if url.startswith('postgres://'):
            url = url.replace('postgres://', 'postgresql+psycopg://', 1)
        elif url.startswith('postgresql://'):
            url = url.replace('postgresql://', 'postgresql+psycopg://', 1)
    return url or 'sqlite:///hotel.db'


def _env_flag(name, default='false'):
    return os.environ.get(name, default).lower() == 'true'


class Config:
    """Base configuration read from the environment"""

    SECRET_KEY = os.environ.get('SECRET_KEY') or secrets.token_hex(32)
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Database
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }

    # JWT
    JWT_ALGORITHM = 'HS256'
    JWT_EXPIRATION = timedelta(hours=int(os.environ.get('JWT_EXPIRATION_HOURS', 24 * 30)))

    # Uploads
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER', os.path.join(os.getcwd(), 'uploads'))
    UPLOAD_URL_PREFIX = os.environ.get('UPLOAD_URL_PREFIX', '/uploads')
    MAX_UPLOAD_BYTES = int(os.environ.get('MAX_UPLOAD_BYTES', 2_000_000))
    ALLOWED_IMAGE_EXTENSIONS = {'jpg', 'jpeg', 'png', 'gif', 'webp'}

    # Mail
    MAIL_BACKEND = os.environ.get('MAIL_BACKEND', 'smtp')  # smtp, log
    MAIL_SERVER = os.environ.get('MAIL_SERVER', 'smtp.gmail.com')
    MAIL_PORT = int(os.environ.get('MAIL_PORT', 587))
    MAIL_USE_TLS = _env_flag('MAIL_USE_TLS', 'true')
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME', '')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD', '')
    MAIL_SENDER = os.environ.get('MAIL_SENDER', os.environ.get('MAIL_USERNAME', ''))
    HOTEL_NAME = os.environ.get('HOTEL_NAME', 'HeiinN Hotel')

    # Notifications: fire-and-forget on a thread, no retry unless configured
    NOTIFY_ASYNC = _env_flag('NOTIFY_ASYNC', 'true')
    NOTIFY_MAX_ATTEMPTS = int(os.environ.get('NOTIFY_MAX_ATTEMPTS', 1))

    # Bookings in these statuses no longer block their room
    RELEASED_BOOKING_STATUSES = ('Cancelled', 'Failed')


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    MAIL_BACKEND = 'log'
    MAIL_SENDER = 'frontdesk@hotel.test'
    NOTIFY_ASYNC = False
