"""Display formatting for dates, mileage, cost and reminder summaries."""

from datetime import date
from typing import Optional


def format_display_date(value: Optional[date]) -> Optional[str]:
    """Format a date as 'Jul 1, 2024'."""
    if value is None:
        return None
    return f"{value:%b} {value.day}, {value.year}"


def format_mileage_label(miles: Optional[float]) -> Optional[str]:
    """Format a mileage as '50,000 mi'."""
    if miles is None:
        return None
    return f"{miles:,.0f} mi"


def format_cost_cents(cost_cents: Optional[int]) -> Optional[str]:
    """Format an integer cents amount as '$85.00'."""
    if cost_cents is None or isinstance(cost_cents, bool):
        return None
    return f"${cost_cents / 100:.2f}"


def reminder_summary(days_until_due: Optional[int], miles_until_due: Optional[float]) -> Optional[str]:
    """
    Build the short reminder line shown in emails and the status view.

    e.g. 'Due in 12 days • 350 miles remaining'
    """
    parts = []

    if days_until_due is not None:
        if days_until_due <= 0:
            parts.append("Due now")
        elif days_until_due == 1:
            parts.append("Due tomorrow")
        else:
            parts.append(f"Due in {days_until_due} days")

    if miles_until_due is not None:
        if miles_until_due <= 0:
            parts.append("Mileage threshold met")
        else:
            parts.append(f"{miles_until_due:,.0f} miles remaining")

    if not parts:
        return None
    return " • ".join(parts)
