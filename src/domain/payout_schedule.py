"""Payout holding period rules

Providers are paid once a jurisdiction-specific holding period has elapsed
after the session ends. Time already spent between payment and session
(payment aging) counts toward that period, but at least one day always
remains after the session.
"""

from datetime import datetime, timedelta
from typing import Mapping, Optional

MINIMUM_REMAINING_DELAY_DAYS = 1
DEFAULT_JURISDICTION = "DEFAULT"


def payment_aging_days(payment_created_at: datetime, session_start_time: datetime) -> int:
    """Whole days between payment and session start (never negative)"""
    return max(0, (session_start_time - payment_created_at).days)


def remaining_delay_days(required_delay_days: int, aging_days: int) -> int:
    return max(MINIMUM_REMAINING_DELAY_DAYS, required_delay_days - aging_days)


def compute_scheduled_transfer_time(
    payment_created_at: datetime,
    session_start_time: datetime,
    session_end_time: datetime,
    required_delay_days: int,
) -> datetime:
    """
    Earliest time the provider share may be transferred

    Args:
        payment_created_at: When the guest paid
        session_start_time: Session start
        session_end_time: Session end
        required_delay_days: Jurisdiction holding period in days

    Returns:
        session_end_time + max(1, required_delay_days - payment_aging_days)
    """
    aging = payment_aging_days(payment_created_at, session_start_time)
    return session_end_time + timedelta(days=remaining_delay_days(required_delay_days, aging))


def required_delay_days_for(
    country_code: Optional[str], delay_table: Mapping[str, int]
) -> int:
    """Look up the holding period for a jurisdiction, falling back to DEFAULT"""
    key = (country_code or DEFAULT_JURISDICTION).upper()
    if key in delay_table:
        return int(delay_table[key])
    return int(delay_table[DEFAULT_JURISDICTION])
