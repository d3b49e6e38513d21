import os

from dotenv import load_dotenv

# Load .env from the project directory before the config class is imported
load_dotenv(os.path.join(os.path.dirname(os.path.abspath(__file__)), '.env'))
os.environ.setdefault('FLASK_ENV', 'production')

from app import create_app  # noqa: E402

application = create_app()
