import pytz
from datetime import datetime, date, timedelta

utc = pytz.utc


def ensure_utc(dt, target_timezone=utc):
    """Ensure datetime object is timezone-aware and in UTC"""
    if dt is None:
        return None

    if isinstance(dt, str):
        # If it's a string, parse it first
        dt = datetime.fromisoformat(dt.replace("Z", "+00:00"))

    if dt.tzinfo is not None:
        # Already timezone-aware, convert to UTC
        return dt.astimezone(target_timezone)
    else:
        # Timezone-naive (SQLite drops tzinfo), assume it's stored as UTC
        return target_timezone.localize(dt)


def now_utc():
    """Get current datetime in UTC"""
    return datetime.now(utc)


def utc_today() -> date:
    """The single 'today' used by all scheduling math (UTC civil date)"""
    return now_utc().date()


def to_civil_date(value):
    """Reduce a datetime/date/ISO string to its UTC civil date"""
    if value is None:
        return None
    if isinstance(value, str):
        if len(value) == 10:
            return date.fromisoformat(value)
        value = ensure_utc(value)
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    return value


def day_bounds(day: date):
    """[start, end) of a UTC civil day as aware datetimes"""
    start = utc.localize(datetime.combine(day, datetime.min.time()))
    return start, start + timedelta(days=1)


def day_of_week(day: date) -> int:
    """Weekday index with 0=Sunday .. 6=Saturday"""
    return day.isoweekday() % 7


def days_between(earlier, later) -> int:
    """Whole civil days from earlier to later (negative if later is before)"""
    return (to_civil_date(later) - to_civil_date(earlier)).days


def format_relative_due(target_date, today: date = None) -> str:
    """Format a scheduled date relative to today with civil day boundaries"""
    if target_date is None:
        return "Not scheduled"
    if today is None:
        today = utc_today()

    delta = days_between(today, target_date)

    if delta < 0:
        return f"overdue by {-delta} day{'s' if delta != -1 else ''}"
    elif delta == 0:
        return "due today"
    elif delta == 1:
        return "due tomorrow"
    elif delta <= 7:
        day_name = to_civil_date(target_date).strftime("%A")
        return f"due {day_name} ({delta} days)"
    else:
        return f"due in {delta} days"


def get_this_week_s_sunday(today: date = None) -> date:
    """returns the date of this week's sunday - week starting (UTC)"""
    if today is None:
        today = utc_today()
    return today - timedelta(days=day_of_week(today))
