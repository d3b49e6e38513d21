import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


class Config:
    # Environment
    FLASK_ENV = os.getenv('FLASK_ENV', 'development')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///pension_crm.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    PERMANENT_SESSION_LIFETIME = timedelta(minutes=30)

    # Dates shown to clients and planner schedules use this zone
    APP_TIMEZONE = os.getenv('APP_TIMEZONE', 'Europe/Istanbul')
    DEFAULT_CONSULTANT_NAME = os.getenv('DEFAULT_CONSULTANT_NAME', 'Danışmanınız')

    # Mail settings (SendGrid first, SMTP fallback)
    SENDGRID_API_KEY = os.getenv('SENDGRID_API_KEY')
    EMAIL_FROM = os.getenv('EMAIL_FROM', 'no-reply@pensioncrm.test')
    MAIL_SERVER = os.getenv('MAIL_SERVER', 'smtp.gmail.com')
    MAIL_PORT = int(os.getenv('MAIL_PORT', 587))
    MAIL_USE_TLS = os.getenv('MAIL_USE_TLS', 'True').lower() == 'true'
    MAIL_USERNAME = os.getenv('MAIL_USERNAME')
    MAIL_PASSWORD = os.getenv('MAIL_PASSWORD')

    # OpenAI configuration
    OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
    OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')

    # QuickChart-compatible chart renderer
    QUICKCHART_URL = os.getenv('QUICKCHART_URL', 'http://localhost:3400/chart')

    # Exchange rates for the dashboard
    MARKET_RATES_URL = os.getenv('MARKET_RATES_URL', 'https://api.frankfurter.app/latest')

    # Supabase storage for consultant avatars
    SUPABASE_URL = os.getenv('SUPABASE_URL')
    SUPABASE_KEY = os.getenv('SUPABASE_KEY')
    AVATAR_BUCKET = os.getenv('AVATAR_BUCKET', 'avatars')
    MAX_AVATAR_BYTES = 5 * 1024 * 1024


class TestingConfig(Config):
    TESTING = True
    WTF_CSRF_ENABLED = False
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SECRET_KEY = 'test-secret-key-for-testing-only'
    LOG_LEVEL = 'DEBUG'
    OPENAI_API_KEY = None
    SENDGRID_API_KEY = None
    MAIL_USERNAME = None
    MAIL_PASSWORD = None
