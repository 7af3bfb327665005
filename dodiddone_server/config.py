"""Runtime configuration for the DoDidDone backend.

Settings are read from environment variables so they can be changed in
development or production without code changes.
"""
import os


def _trueish(v: str | None) -> bool:
    if not v:
        return False
    return v.lower() in ('1', 'true', 'yes', 'on')


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


# Async SQLAlchemy URL. Tests point this at a throwaway sqlite file.
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite+aiosqlite:///./dodiddone.db')

# SECRET_KEY must be set in the environment in production. The fallback only
# exists so modules import cleanly; the app lifespan refuses to start with it.
INSECURE_SECRET_KEY = 'CHANGE_ME_IN_ENV_FOR_TESTS'
SECRET_KEY = os.getenv('SECRET_KEY', INSECURE_SECRET_KEY)

# Lifetime of an access token and of its server-side session row.
ACCESS_TOKEN_EXPIRE_MINUTES = _int_env('ACCESS_TOKEN_EXPIRE_MINUTES', 60 * 24)

# Lifetime of one-shot recovery / signup confirmation tokens.
RECOVERY_TOKEN_EXPIRE_MINUTES = _int_env('RECOVERY_TOKEN_EXPIRE_MINUTES', 60)

# When true, new accounts cannot log in until the signup token is verified.
REQUIRE_EMAIL_CONFIRMATION = _trueish(os.getenv('REQUIRE_EMAIL_CONFIRMATION', '0'))

MIN_PASSWORD_LENGTH = _int_env('MIN_PASSWORD_LENGTH', 6)

# Base URL of the client site; used to build recovery and confirmation links.
SITE_URL = os.getenv('SITE_URL', 'http://localhost:3000')
