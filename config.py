import os

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'change-me-cash-ledger-secret-key'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'cash_ledger.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Ledger rules
    LOW_BALANCE_THRESHOLD = 10000
    BALANCE_WRITE_RETRIES = 5
    NOTIFICATION_POLL_SECONDS = 15
    CURRENCY_SYMBOL = '₦'

    # Created on first start and after every reset
    DEFAULT_ADMIN = {
        'id': 'admin-001',
        'full_name': 'System Admin',
        'address': 'HQ',
        'phone_number': '+2340000000000',
        'guardian_phone_number': '',
        'pin': '1234',
    }


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    LOG_LEVEL = 'DEBUG'
