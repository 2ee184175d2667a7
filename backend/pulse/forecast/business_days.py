from collections.abc import Iterable
from datetime import date, timedelta


def working_days_remaining(today: date, end_date: date, holidays: Iterable[date] = ()) -> int:
    """Weekdays from tomorrow through *end_date* inclusive, skipping *holidays*."""
    skip = set(holidays)
    count = 0
    current = today + timedelta(days=1)
    while current <= end_date:
        if current.weekday() < 5 and current not in skip:
            count += 1
        current += timedelta(days=1)
    return count
