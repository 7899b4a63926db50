"""Date bound resolution for query synthesis.

Turns ISO dates/datetimes and relative tokens ("today", "yesterday",
"7 days ago", "last month") into calendar dates. Resolution is pure: "now" is
always passed in by the caller.
"""

import calendar
import re
from datetime import date, datetime, timedelta

from graphsearch.orchestrators.search.errors import CallerInputError

_RELATIVE_AGO = re.compile(
    r"^(?P<n>\d+|an?|one)\s+(?P<unit>day|week|month|year)s?\s+ago$"
)
_LAST_UNIT = re.compile(r"^(?:last|past|previous)\s+(?P<unit>day|week|month|year)$")


def _shift_months(d: date, months: int) -> date:
    month_index = d.month - 1 - months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _subtract(today: date, n: int, unit: str) -> date:
    if unit == "day":
        return today - timedelta(days=n)
    if unit == "week":
        return today - timedelta(weeks=n)
    if unit == "month":
        return _shift_months(today, n)
    return _shift_months(today, 12 * n)


def resolve_date(value: str | date | datetime, now: datetime) -> date:
    """Resolve one date bound to a calendar date.

    Raises CallerInputError for anything that is neither ISO nor a supported
    relative token.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    raw = str(value).strip()
    if not raw:
        raise CallerInputError("Empty date value")
    token = re.sub(r"\s+", " ", raw.lower())
    today = now.date()

    if token in ("today", "now"):
        return today
    if token == "yesterday":
        return today - timedelta(days=1)

    match = _RELATIVE_AGO.match(token)
    if match:
        n_raw = match.group("n")
        n = 1 if n_raw in ("a", "an", "one") else int(n_raw)
        return _subtract(today, n, match.group("unit"))

    match = _LAST_UNIT.match(token)
    if match:
        return _subtract(today, 1, match.group("unit"))

    # ISO date or datetime; only the date part is kept.
    try:
        return date.fromisoformat(raw.split("T")[0][:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        raise CallerInputError(
            f"Malformed date: '{raw}'. Use YYYY-MM-DD, an ISO datetime, "
            "or a relative form such as 'yesterday' or '7 days ago'."
        ) from None


def resolve_date_range(
    start: str | date | datetime | None,
    end: str | date | datetime | None,
    now: datetime,
) -> tuple[date | None, date | None]:
    """Resolve both bounds; blank bounds stay open."""
    start_date = resolve_date(start, now) if start is not None and str(start).strip() else None
    end_date = resolve_date(end, now) if end is not None and str(end).strip() else None
    if start_date and end_date and start_date > end_date:
        raise CallerInputError(
            f"Date range start {start_date.isoformat()} is after end {end_date.isoformat()}"
        )
    return start_date, end_date
