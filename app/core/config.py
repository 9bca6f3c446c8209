import os
from dotenv import load_dotenv

# Load environment variables from .env file (for local development)
load_dotenv()


class Settings:
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./exam_sessions.db")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # "anonymous": students type a name/email and share one default user id
    # "authenticated": the user id comes from the bearer token
    IDENTITY_MODE = os.getenv("IDENTITY_MODE", "anonymous").lower()
    # "unlimited" or "single" (one attempt per user and exam, resumable)
    ATTEMPT_POLICY = os.getenv("ATTEMPT_POLICY", "unlimited").lower()

    DEFAULT_USER_ID = os.getenv("DEFAULT_USER_ID", "default-user")
    DEFAULT_STUDENT_NAME = os.getenv("DEFAULT_STUDENT_NAME", "Anonymous Student")
    DEFAULT_STUDENT_EMAIL = os.getenv("DEFAULT_STUDENT_EMAIL", "student@example.com")

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me-to-a-long-random-secret-value")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")


settings = Settings()
