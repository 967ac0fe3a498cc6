# hidden_gems/core/config.py
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# ================== ENV ==================

ROOT_DIR = Path(__file__).resolve().parents[2]
load_dotenv(ROOT_DIR / "hidden_gems/.env")


def env(*names: str, default: Optional[str] = None) -> str:
    for n in names:
        v = os.environ.get(n)
        if v is not None and str(v).strip() != "":
            return v
    if default is not None:
        return default
    raise KeyError(f"Missing required env var. Tried: {', '.join(names)}")


def env_flag(name: str, default: str = "false") -> bool:
    return env(name, default=default).lower() in {"1", "true", "yes"}


APP_NAME = "Hidden Gems"
LOG_DIR = env("LOG_DIR", default="logs")

# ================== JWT ==================

JWT_SECRET = os.environ.get("JWT_SECRET", "default_secret_key")
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = int(os.environ.get("JWT_EXPIRATION_HOURS", "24"))
AUTH_COOKIE_NAME = "access_token"

# ================== CORS ==================

CORS_ORIGINS = env("CORS_ORIGINS", default="*").split(",")

# ================== DATABASE ==================

DATABASE_URL = os.environ.get("DATABASE_URL", "")


def get_database_url() -> str:
    """Get database URL - supports an explicit URL, MySQL or SQLite."""
    if DATABASE_URL:
        return DATABASE_URL

    mysql_host = os.environ.get("MYSQL_HOST")
    if mysql_host:
        mysql_port = int(os.environ.get("MYSQL_PORT", "3306"))
        mysql_user = os.environ.get("MYSQL_USER", "root")
        mysql_password = os.environ.get("MYSQL_PASSWORD", "")
        mysql_db = os.environ.get("MYSQL_DB", "hidden_gems")
        return f"mysql+asyncmy://{mysql_user}:{mysql_password}@{mysql_host}:{mysql_port}/{mysql_db}?charset=utf8mb4"

    db_path = ROOT_DIR / "hidden_gems" / "hidden_gems.db"
    return f"sqlite+aiosqlite:///{db_path}"

# ================== LISTINGS ==================

FREE_TRIAL_ENABLED = env_flag("FREE_TRIAL_ENABLED", default="true")
FREE_TRIAL_DAYS = int(env("FREE_TRIAL_DAYS", default="30"))
EXPIRY_WARNING_DAYS = 7

GEM_CATEGORIES = ("eat_drink", "nature", "stay", "culture", "adventure", "entertainment")

# Prices in KES per six month term
PRICING = {
    "standard": {"per_term": 500, "per_year": 1000},
    "featured": {"per_term": 750, "per_year": 1500},
    "term_months": 6,
}
CURRENCY = "KES"

# ================== M-PESA ==================

MPESA_CONSUMER_KEY = os.environ.get("MPESA_CONSUMER_KEY", "")
MPESA_CONSUMER_SECRET = os.environ.get("MPESA_CONSUMER_SECRET", "")
MPESA_SHORTCODE = os.environ.get("MPESA_SHORTCODE", "174379")
MPESA_PASSKEY = os.environ.get("MPESA_PASSKEY", "")
MPESA_CALLBACK_URL = os.environ.get("MPESA_CALLBACK_URL", "")
MPESA_ENV = os.environ.get("MPESA_ENV", "sandbox")


def mpesa_base_url() -> str:
    if MPESA_ENV == "production":
        return "https://api.safaricom.co.ke"
    return "https://sandbox.safaricom.co.ke"

# ================== OAUTH ==================

OAUTH_CLIENT_ID = os.environ.get("OAUTH_CLIENT_ID", "")
OAUTH_CLIENT_SECRET = os.environ.get("OAUTH_CLIENT_SECRET", "")
OAUTH_TOKEN_URL = os.environ.get("OAUTH_TOKEN_URL", "")
OAUTH_USERINFO_URL = os.environ.get("OAUTH_USERINFO_URL", "")
OAUTH_REDIRECT_URI = os.environ.get("OAUTH_REDIRECT_URI", "")

# ================== MEDIA ==================

CLOUDINARY_CLOUD_NAME = os.environ.get("CLOUDINARY_CLOUD_NAME", "")
CLOUDINARY_UPLOAD_PRESET = env("CLOUDINARY_UPLOAD_PRESET", default="gems_uploads")

# ================== TRAFFIC ==================

TRAFFIC_CACHE_TTL = int(env("TRAFFIC_CACHE_TTL", default="30"))
