import os
from datetime import datetime, timezone
import pytz
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")

# Ключ шифрования серверных сидов (обязателен для открытия розыгрышей)
SEED_ENCRYPTION_KEY = os.getenv("SEED_ENCRYPTION_KEY")
ADMIN_TOKEN = os.getenv("ADMIN_TOKEN")

BEACON_URL = os.getenv("BEACON_URL", "https://api.drand.sh").rstrip("/")
BEACON_TIMEOUT_SECONDS = float(os.getenv("BEACON_TIMEOUT_SECONDS", "10"))

WINNER_WEBHOOK_URL = os.getenv("WINNER_WEBHOOK_URL")

DRAW_SCHEDULER_ENABLED = os.getenv("DRAW_SCHEDULER_ENABLED", "true").lower() in ("1", "true", "yes")
DRAW_CHECK_INTERVAL_SECONDS = int(os.getenv("DRAW_CHECK_INTERVAL_SECONDS", "60"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DISPLAY_TZ = pytz.timezone(os.getenv("DISPLAY_TIMEZONE", "UTC"))


def utc_now() -> datetime:
    """Текущее время в UTC с точностью до миллисекунд"""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def to_display_time(dt: datetime) -> str:
    """Форматировать время для объявлений в настроенной таймзоне"""
    if dt.tzinfo is None:
        dt = pytz.UTC.localize(dt)
    return dt.astimezone(DISPLAY_TZ).strftime("%d.%m.%Y %H:%M %Z")
