from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()

DEFAULT_API_URL = "http://localhost:4000"
DEFAULT_STORE_TIMEZONE = "America/Argentina/Buenos_Aires"


def api_base_url() -> str:
    return (os.getenv("DESPENSA_API_URL") or DEFAULT_API_URL).rstrip("/")


def save_debounce_seconds() -> float:
    raw = os.getenv("SAVE_DEBOUNCE_SECONDS")
    if not raw:
        return 0.5
    try:
        value = float(raw)
    except ValueError:
        return 0.5
    return value if value >= 0 else 0.5


def fiado_payment_secret() -> str:
    return os.getenv("FIADO_PAYMENT_SECRET") or "19256436"


def fiado_delete_secret() -> str:
    return os.getenv("FIADO_DELETE_SECRET") or "64352991"


def store_timezone() -> str:
    return os.getenv("STORE_TIMEZONE") or DEFAULT_STORE_TIMEZONE
