import os


def _flag(name, default='false'):
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


class BaseConfig:
    SECRET_KEY = os.getenv('SECRET_KEY', 'change-me')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///homenet.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_COOKIE_SAMESITE = 'Lax'
    SESSION_COOKIE_SECURE = False
    SESSION_COOKIE_HTTPONLY = True

    # Admin tokens
    ADMIN_JWT_SECRET = os.getenv('ADMIN_JWT_SECRET', 'change-me-too')
    JWT_ISSUER = os.getenv('JWT_ISSUER', 'homenet-admin')
    JWT_ACCESS_MINUTES = int(os.getenv('JWT_ACCESS_MINUTES', '15'))
    JWT_REFRESH_DAYS = int(os.getenv('JWT_REFRESH_DAYS', '7'))

    # Outgoing mail (admin notifications)
    MAIL_SERVER = os.getenv('MAIL_SERVER')
    MAIL_PORT = int(os.getenv('MAIL_PORT', '587'))
    MAIL_USERNAME = os.getenv('MAIL_USERNAME')
    MAIL_PASSWORD = os.getenv('MAIL_PASSWORD')
    MAIL_USE_TLS = _flag('MAIL_USE_TLS', 'true')
    ADMIN_EMAIL = os.getenv('ADMIN_EMAIL')
    NOTIFY_ASYNC = _flag('NOTIFY_ASYNC', 'true')

    # Intake / booking rules
    QUOTE_COOLDOWN_MINUTES = int(os.getenv('QUOTE_COOLDOWN_MINUTES', '10'))
    CONSULTATION_COOLDOWN_MINUTES = int(os.getenv('CONSULTATION_COOLDOWN_MINUTES', '10'))
    BOOKING_WINDOW_DAYS = int(os.getenv('BOOKING_WINDOW_DAYS', '90'))


class DevConfig(BaseConfig):
    DEBUG = True
    ENV = 'development'


class ProdConfig(BaseConfig):
    DEBUG = False
    ENV = 'production'
    SESSION_COOKIE_SECURE = True


class TestConfig(BaseConfig):
    TESTING = True
    ENV = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    ADMIN_JWT_SECRET = 'test-secret'
    MAIL_SERVER = None
    NOTIFY_ASYNC = False


CONFIGS = {
    'development': DevConfig,
    'production': ProdConfig,
    'testing': TestConfig,
}
