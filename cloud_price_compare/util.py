import datetime
import logging
import os

import humanize
from dateutil.parser import isoparse

logger = logging.getLogger(__name__)


def read_file(file_path: str) -> str:
    with open(os.path.expanduser(file_path)) as f:
        return f.read()


def parse_iso_timestamp(ts: str | None) -> datetime.datetime | None:
    """'2024-01-01T00:00:00.000Z' -> tz-aware datetime, None if not parseable"""
    if not ts:
        return None
    try:
        dt = isoparse(ts)
    except ValueError:
        logger.debug("Could not parse timestamp: %s", ts)
        return None
    if not dt.tzinfo:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt


def timestamp_to_human_readable_delta(
    dt1: datetime.datetime | None, dt2: datetime.datetime | None = None
) -> str:
    if not dt1:
        return "N/A"

    if not dt2:
        dt2 = datetime.datetime.now(datetime.timezone.utc)
    return humanize.naturaldelta(dt2 - dt1)


def format_usd(amount: float | None, digits: int = 4) -> str:
    if amount is None:
        return "N/A"
    return f"${round(amount, digits)}"
