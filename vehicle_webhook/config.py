# vehicle_webhook/config.py
from dotenv import load_dotenv
import logging
import os
from typing import Optional

# load local .env if present
load_dotenv()

logger = logging.getLogger(__name__)


def _ssm_enabled() -> bool:
    return os.getenv("USE_SSM", "").lower() in ("1", "true", "yes")


def _get_param_from_ssm(name: str, decrypt: bool = False) -> Optional[str]:
    """
    Try to fetch from SSM. Import boto3/ssm helper lazily so imports don't fail
    if boto3 isn't installed or the instance role can't read the parameter.
    """
    if not _ssm_enabled():
        return None
    try:
        from .utils.ssm import get_param
        return get_param(name, decrypt=decrypt)
    except Exception as e:
        logger.warning("SSM lookup for %s failed (%s); falling back to environment", name, type(e).__name__)
        return None


def _get_param_with_fallback(name: str, decrypt: bool = False, default: Optional[str] = None) -> Optional[str]:
    val = _get_param_from_ssm(name, decrypt=decrypt)
    if val:
        return val
    return os.getenv(name, default)


def _get_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default


def get_database_url() -> str:
    db = _get_param_with_fallback("DATABASE_URL", decrypt=True)
    if db:
        return db
    return "sqlite:///vehicle_webhook.sqlite"


def get_webhook_secret() -> str:
    return _get_param_with_fallback("WEBHOOK_SECRET", decrypt=True, default="") or ""


class Config:
    SQLALCHEMY_DATABASE_URI = get_database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Shared secret for SC-Signature verification and VERIFY handshakes; read from SSM or env
    WEBHOOK_SECRET = get_webhook_secret()
    WEBHOOK_SIGNATURE_HEADER = os.getenv("WEBHOOK_SIGNATURE_HEADER", "SC-Signature")

    EVENTS_DEFAULT_LIMIT = _get_int("EVENTS_DEFAULT_LIMIT", 50)
    EVENTS_MAX_LIMIT = _get_int("EVENTS_MAX_LIMIT", 200)
    SIGNALS_DEFAULT_LIMIT = _get_int("SIGNALS_DEFAULT_LIMIT", 200)
    SIGNALS_MAX_LIMIT = _get_int("SIGNALS_MAX_LIMIT", 1000)
