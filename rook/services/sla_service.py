"""
SLA clock.

WHAT: Maps a priority to a breach deadline and evaluates whether a
deadline has passed.

WHY: Breach status is derived, never stored. Every read path calls
is_breached against the wall clock, so the answer cannot go stale and no
background job has to keep a flag in sync.

HOW: Two fixed tables:
- Incident: critical 2h, high 4h, medium 8h, low 24h
- Legacy unified ticket: high 4h, medium 8h, anything else 24h

Service requests never get a breach_at; only incident and unified ticket
creation stamp one.
"""

from datetime import datetime, timedelta
from typing import Optional

from rook.models.ticket import TicketPriority


INCIDENT_BREACH_HOURS = {
    TicketPriority.CRITICAL: 2,
    TicketPriority.HIGH: 4,
    TicketPriority.MEDIUM: 8,
    TicketPriority.LOW: 24,
}

LEGACY_BREACH_HOURS = {
    TicketPriority.HIGH: 4,
    TicketPriority.MEDIUM: 8,
}
LEGACY_DEFAULT_BREACH_HOURS = 24


def compute_breach_at(priority: TicketPriority, now: Optional[datetime] = None) -> datetime:
    """
    Compute the incident breach deadline.

    Args:
        priority: Incident priority
        now: Creation time (defaults to utcnow)

    Returns:
        Deadline timestamp

    Example:
        >>> start = datetime(2025, 1, 1, 12, 0)
        >>> compute_breach_at(TicketPriority.HIGH, start)
        datetime.datetime(2025, 1, 1, 16, 0)
    """
    now = now or datetime.utcnow()
    return now + timedelta(hours=INCIDENT_BREACH_HOURS[TicketPriority(priority)])


def compute_legacy_breach_at(priority: TicketPriority, now: Optional[datetime] = None) -> datetime:
    """
    Compute the deadline with the shorter legacy table.

    Used when a ticket is opened through the unified /tickets collection.
    """
    now = now or datetime.utcnow()
    hours = LEGACY_BREACH_HOURS.get(TicketPriority(priority), LEGACY_DEFAULT_BREACH_HOURS)
    return now + timedelta(hours=hours)


def is_breached(breach_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """
    True once the deadline has passed. Tickets without a deadline never breach.
    """
    if breach_at is None:
        return False
    return breach_at < (now or datetime.utcnow())
