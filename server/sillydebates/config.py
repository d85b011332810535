import os
import dotenv

dotenv.load_dotenv()

DATABASE_HOST = os.environ.get("DATABASE_HOST", "localhost")
DATABASE_PORT = os.environ.get("DATABASE_PORT", "5432")
DATABASE_USER = os.environ.get("DATABASE_USER", "user")
DATABASE_PASSWORD = os.environ.get("DATABASE_PASSWORD", "password")
DATABASE_NAME = os.environ.get("DATABASE_NAME", "dbname")
DATABASE_URL = os.environ.get(
    "DATABASE_URL",
    f"postgresql+asyncpg://{DATABASE_USER}:{DATABASE_PASSWORD}@{DATABASE_HOST}:{DATABASE_PORT}/{DATABASE_NAME}",
)
DATABASE_ECHO = os.environ.get("DATABASE_ECHO", "false").lower() == "true"

SERVER_HOST = os.environ.get("SERVER_HOST", "0.0.0.0")
SERVER_PORT = int(os.environ.get("SERVER_PORT", 8080))
CLIENT_URL = os.environ.get("CLIENT_URL", "http://localhost:3000")

GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
GEMINI_MODEL_NAME = os.environ.get("GEMINI_MODEL_NAME", "gemini-1.5-flash")

AUTH0_DOMAIN = os.environ.get("AUTH0_DOMAIN")
AUTH0_API_AUDIENCE = os.environ.get("AUTH0_API_AUDIENCE")

# Bearer secret presented by the daily scheduler; unset means cron routes are open.
CRON_SECRET = os.environ.get("CRON_SECRET", "")

CHALLENGE_DAYS = int(os.environ.get("CHALLENGE_DAYS", 30))
MAX_ENTRY_LENGTH = int(os.environ.get("MAX_ENTRY_LENGTH", 280))

AI_TIMEOUT_SECONDS = float(os.environ.get("AI_TIMEOUT_SECONDS", 20))
ARCHIVE_TIMEOUT_SECONDS = float(os.environ.get("ARCHIVE_TIMEOUT_SECONDS", 30))

SPACES_KEY = os.environ.get("SPACES_KEY", "")
SPACES_SECRET = os.environ.get("SPACES_SECRET", "")
SPACES_BUCKET = os.environ.get("SPACES_BUCKET", "silly-debates")
SPACES_REGION = os.environ.get("SPACES_REGION", "nyc3")
