"""Date resolution for cache filters.

Handles the three date concerns of filter compilation:
- Dynamic date modes ("today", "start_of_week", ...) resolved to YYYY-MM-DD
- Date-only values converted to UTC using the configured timezone's offset
  for that specific date (DST aware)
- Date-only equality expanded to a full UTC-day range

Timezone setting formats:
    "utc"                   UTC
    "+0500", "-03:30"       fixed offset
    "America/Mexico_City"   named zone (pytz)
    None, "", "local"       host timezone
"""

import calendar
import re
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Optional

import pytz

from constants import DYNAMIC_DATE_MODES
from core.logging import get_logger
from models.filters import DATE_DESCRIPTOR_KEYS, DateDescriptor

logger = get_logger(__name__)

DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
OFFSET_RE = re.compile(r"^([+-])(\d{2}):?(\d{2})$")

HOST_TIMEZONE_VALUES = frozenset(["", "local", "system"])
UTC_TIMEZONE_VALUES = frozenset(["utc", "z", "gmt"])

DAY_START = "T00:00:00Z"
DAY_END = "T23:59:59Z"


def is_date_only(value: Any) -> bool:
    return isinstance(value, str) and bool(DATE_ONLY_RE.match(value))


def _host_offset(reference: date) -> timedelta:
    # Noon avoids landing inside a DST transition
    return datetime(reference.year, reference.month, reference.day, 12).astimezone().utcoffset()


def timezone_offset(setting: Optional[str], reference: date) -> timedelta:
    """UTC offset of the configured timezone on a given date.

    Args:
        setting: Timezone setting (see module docstring)
        reference: Date the offset applies to

    Returns:
        Offset as timedelta (negative west of UTC)
    """
    value = (setting or "").strip()

    if value.lower() in HOST_TIMEZONE_VALUES:
        return _host_offset(reference)

    if value.lower() in UTC_TIMEZONE_VALUES:
        return timedelta(0)

    match = OFFSET_RE.match(value)
    if match:
        sign, hours, minutes = match.groups()
        offset = timedelta(hours=int(hours), minutes=int(minutes))
        return -offset if sign == "-" else offset

    try:
        zone = pytz.timezone(value)
    except pytz.UnknownTimeZoneError:
        logger.warning("Unknown timezone setting, using host timezone", timezone=value)
        return _host_offset(reference)

    noon = datetime(reference.year, reference.month, reference.day, 12)
    return zone.localize(noon).utcoffset()


def add_months(day: date, months: int) -> date:
    """Calendar month arithmetic, clamped to the end of the target month."""
    years, month_index = divmod(day.month - 1 + months, 12)
    year = day.year + years
    month = month_index + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


class DateResolver:
    """Resolves filter date values against a configured timezone.

    Pure apart from the clock: ``today`` can be injected for deterministic
    resolution.
    """

    def __init__(self, timezone_setting: Optional[str] = None,
                 today: Optional[Callable[[], date]] = None):
        self.timezone_setting = timezone_setting
        self._today = today or self._local_today

    def _local_today(self) -> date:
        now_utc = datetime.now(pytz.utc).replace(tzinfo=None)
        return (now_utc + timezone_offset(self.timezone_setting, now_utc.date())).date()

    # =========================================================================
    # DATE MODES
    # =========================================================================

    def is_dynamic_mode(self, date_mode: Any) -> bool:
        return date_mode is not None and str(date_mode).strip().lower() in DYNAMIC_DATE_MODES

    def resolve(self, date_mode: Any) -> Optional[str]:
        """Resolve a date mode keyword to YYYY-MM-DD.

        Unknown keywords are returned unchanged (they may already be dates).
        """
        if date_mode is None:
            return None

        mode = str(date_mode).strip().lower()
        today = self._today()
        weekday = (today.weekday() + 1) % 7  # Sunday = 0

        if mode == "today":
            resolved = today
        elif mode == "yesterday":
            resolved = today - timedelta(days=1)
        elif mode == "tomorrow":
            resolved = today + timedelta(days=1)
        elif mode == "one_week_ago":
            resolved = today - timedelta(days=7)
        elif mode == "one_week_from_now":
            resolved = today + timedelta(days=7)
        elif mode == "one_month_ago":
            resolved = add_months(today, -1)
        elif mode == "one_month_from_now":
            resolved = add_months(today, 1)
        elif mode == "start_of_week":
            resolved = today - timedelta(days=weekday)
        elif mode == "end_of_week":
            resolved = today + timedelta(days=6 - weekday)
        elif mode == "start_of_month":
            resolved = today.replace(day=1)
        elif mode == "end_of_month":
            resolved = today.replace(day=calendar.monthrange(today.year, today.month)[1])
        else:
            return date_mode if isinstance(date_mode, str) else str(date_mode)

        return resolved.isoformat()

    def extract_date_value(self, value: Any) -> Optional[str]:
        """Extract a date string from a plain value or a date descriptor.

        Priority: date_mode_value > date > resolved date_mode.
        """
        if value is None:
            return None

        if isinstance(value, dict):
            value = DateDescriptor(**{k: value.get(k) for k in DATE_DESCRIPTOR_KEYS})

        if isinstance(value, DateDescriptor):
            if value.date_mode_value:
                return value.date_mode_value
            if value.date:
                return value.date
            return self.resolve(value.date_mode)

        return value if isinstance(value, str) else str(value)

    # =========================================================================
    # UTC CONVERSION
    # =========================================================================

    def convert_to_utc_for_filter(self, value: Any) -> Any:
        """Local midnight of a bare date, expressed as a UTC timestamp.

        Values with a time component (or non-strings) are returned unchanged.
        """
        if not is_date_only(value):
            return value

        day = date.fromisoformat(value)
        offset = timezone_offset(self.timezone_setting, day)
        utc_midnight = datetime(day.year, day.month, day.day) - offset
        return utc_midnight.strftime("%Y-%m-%dT%H:%M:%SZ")

    def _day_bounds(self, value: Any) -> Optional[Dict[str, str]]:
        if isinstance(value, (dict, DateDescriptor)):
            value = self.extract_date_value(value)
        if not is_date_only(value):
            return None
        return {"min": f"{value}{DAY_START}", "max": f"{value}{DAY_END}"}

    def convert_date_to_range(self, value: Any) -> Optional[Dict[str, Dict[str, str]]]:
        """Bare date -> {"between": {"min": dT00:00:00Z, "max": dT23:59:59Z}}."""
        bounds = self._day_bounds(value)
        return {"between": bounds} if bounds else None

    def convert_date_to_not_range(self, value: Any) -> Optional[Dict[str, Dict[str, str]]]:
        """Bare date -> {"not_between": {...}} with the same UTC-day bounds."""
        bounds = self._day_bounds(value)
        return {"not_between": bounds} if bounds else None
