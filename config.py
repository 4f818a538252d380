import os
from dotenv import load_dotenv

# Only load .env file in local development
# In production, environment variables are set directly
load_dotenv(override=False)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))


class Config:
    SECRET_KEY = os.getenv("FLASK_SECRET_KEY", "dev-secret-key-change-in-production")
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    QUESTION_SOURCE = os.getenv("QUESTION_SOURCE", "bank")
    QUESTION_BANK_DIR = os.getenv(
        "QUESTION_BANK_DIR", os.path.join(BASE_DIR, "data", "questions")
    )
    QUESTIONS_PER_SESSION = int(os.getenv("QUESTIONS_PER_SESSION", "10"))
    DATABASE_URL = os.getenv(
        "DATABASE_URL", f"sqlite:///{os.path.join(BASE_DIR, 'scholars.db')}"
    )
    GUEST_PROFILE_DIR = os.getenv(
        "GUEST_PROFILE_DIR", os.path.join(BASE_DIR, "data", "guests")
    )
    SESSION_TIMEOUT = int(os.getenv("SESSION_TIMEOUT", "3600"))
    DAILY_GAME_LIMIT = int(os.getenv("DAILY_GAME_LIMIT", "0"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    DEBUG = os.getenv("FLASK_ENV") == "development"

    @staticmethod
    def validate():
        import sys

        print("[CONFIG] Environment validation:", file=sys.stderr)
        print(f"  FLASK_ENV: {os.getenv('FLASK_ENV')}", file=sys.stderr)
        print(f"  QUESTION_SOURCE: {Config.QUESTION_SOURCE}", file=sys.stderr)

        if Config.QUESTIONS_PER_SESSION < 1:
            raise ValueError("QUESTIONS_PER_SESSION must be at least 1")

        if Config.DAILY_GAME_LIMIT < 0:
            raise ValueError("DAILY_GAME_LIMIT must be 0 (unlimited) or positive")

        source = Config.QUESTION_SOURCE.strip().lower()
        if source not in ("bank", "openai"):
            raise ValueError("QUESTION_SOURCE must be 'bank' or 'openai'")

        if source == "bank":
            if not os.path.isdir(Config.QUESTION_BANK_DIR):
                print(
                    f"[ERROR] QUESTION_BANK_DIR not found: {Config.QUESTION_BANK_DIR}",
                    file=sys.stderr,
                )
                raise ValueError("QUESTION_BANK_DIR must point to a directory")
            return

        if not Config.OPENAI_API_KEY:
            print("[ERROR] OPENAI_API_KEY is not set!", file=sys.stderr)
            raise ValueError("OPENAI_API_KEY must be set to generate questions")

        key = Config.OPENAI_API_KEY.strip()

        if key.startswith('"') or key.startswith("'"):
            print("[ERROR] OPENAI_API_KEY contains quotes!", file=sys.stderr)
            raise ValueError("OPENAI_API_KEY contains quotes - remove them")

        if not key.startswith("sk-"):
            print(f"[ERROR] OPENAI_API_KEY has invalid format: '{key[:5]}...'", file=sys.stderr)
            raise ValueError("OPENAI_API_KEY must start with 'sk-'")
