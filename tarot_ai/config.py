"""Environment driven settings.

Values are read once at import time from the process environment, after
loading an optional `.env` file from the project root.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parents[1]

load_dotenv(REPO_ROOT / ".env")

OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
AI_MAX_OUTPUT_TOKENS = int(os.getenv("AI_MAX_OUTPUT_TOKENS", "2000"))

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_PRICE_SINGLE = os.getenv("STRIPE_PRICE_SINGLE", "")
STRIPE_PRICE_UNIVERSAL6 = os.getenv("STRIPE_PRICE_UNIVERSAL6", STRIPE_PRICE_SINGLE)

RESUME_DIR = os.getenv("RESUME_DIR", str(REPO_ROOT / "data" / "resume"))
if not os.path.isabs(RESUME_DIR):
    RESUME_DIR = str(REPO_ROOT / RESUME_DIR)

RESUME_SUBMIT_DELAY = float(os.getenv("RESUME_SUBMIT_DELAY", "1.0"))
RESUME_MAX_AGE_DAYS = int(os.getenv("RESUME_MAX_AGE_DAYS", "7"))
SUCCESS_REDIRECT_DELAY = int(os.getenv("SUCCESS_REDIRECT_DELAY", "3"))

WIZARD_MAX_SESSIONS = int(os.getenv("WIZARD_MAX_SESSIONS", "1000"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]


def openai_api_key() -> str:
    """Read the API key per call so a missing key is reported per request."""
    return (os.getenv("OPENAI_API_KEY") or "").strip()
