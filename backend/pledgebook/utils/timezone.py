from datetime import date, datetime
from zoneinfo import ZoneInfo

from pledgebook.core.config import settings

SHOP_TZ = ZoneInfo(settings.timezone)


def now_local() -> datetime:
    return datetime.now(tz=SHOP_TZ)


def today_local() -> date:
    return now_local().date()
