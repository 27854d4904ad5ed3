from datetime import date, datetime


def now_local() -> datetime:
    """Current wall-clock time in the server's local timezone (tz-aware)."""
    return datetime.now().astimezone()


def iso(dt: datetime) -> str:
    return dt.isoformat()


def parse_iso_datetime(value) -> datetime | None:
    """
    Parse an ISO-8601 timestamp as stored on merchant records.
    Accepts trailing 'Z'. Returns None for empty or unparseable values.
    """
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


def format_ddmmyyyy(value) -> str:
    """Render a date/datetime/ISO string as DD/MM/YYYY; empty string if unknown."""
    if isinstance(value, str):
        parsed = parse_iso_datetime(value)
        if parsed is None:
            try:
                parsed = date.fromisoformat(value.strip())
            except ValueError:
                return ""
        value = parsed
    if isinstance(value, (date, datetime)):
        return value.strftime("%d/%m/%Y")
    return ""
