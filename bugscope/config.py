import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "")

# A placeholder key lets the process start without credentials; the
# provider rejects it on the first completion request.
OPENAI_API_KEY = (
    os.getenv("OPENAI_API_KEY")
    or os.getenv("OPENAI_API_KEY_ENV_VAR")
    or "default_key"
)
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", "90"))

RATE_LIMIT_AI = os.getenv("RATE_LIMIT_AI", "20/minute")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
