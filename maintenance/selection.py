"""Pick the most urgent service and the most recent completed one."""

import math
from typing import Iterable, Optional, Sequence

from .calculations import parse_date, parse_mileage
from .service_log import ServiceLog
from .upcoming import UpcomingService


def _urgency_key(item: UpcomingService):
    due_date = parse_date(item.schedule.next_due_date)
    due_miles = parse_mileage(item.schedule.next_due_mileage)
    return (
        due_date is None,
        due_date.toordinal() if due_date is not None else 0,
        due_miles if due_miles is not None else math.inf,
    )


def pick_next_due_service(upcoming: Sequence[UpcomingService]) -> Optional[UpcomingService]:
    """
    Return the single most urgent upcoming service.

    Dated services come first, earliest date winning; undated ones follow.
    Equal or absent dates fall back to the lowest due mileage, with no
    mileage sorting last. Remaining ties keep input order.
    """
    if not upcoming:
        return None
    return sorted(upcoming, key=_urgency_key)[0]


def get_last_service(logs: Iterable[ServiceLog]) -> Optional[ServiceLog]:
    """Get the most recent completed service (earliest entry wins a tie)."""
    latest = None
    latest_date = None
    for log in logs:
        log_date = parse_date(log.service_date)
        if latest is None or (
            log_date is not None and (latest_date is None or log_date > latest_date)
        ):
            latest = log
            latest_date = log_date
    return latest
