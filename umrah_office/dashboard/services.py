from __future__ import annotations

from datetime import date, datetime, timezone, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional

from umrah_office.domain import Agent, Invoice

PENDING_STATUSES = ("sent", "draft")


def dashboard_stats(invoices: Iterable[Invoice], recent: int = 5) -> Dict[str, Any]:
    """Aggregates for the dashboard cards. Recomputed on every call."""
    invoices = list(invoices)
    paid = [inv for inv in invoices if inv.status == "paid"]
    newest = sorted(invoices, key=lambda inv: inv.created_at or datetime.min, reverse=True)
    return {
        "total_invoices": len(invoices),
        "paid_invoices": len(paid),
        "pending_invoices": sum(1 for inv in invoices if inv.status in PENDING_STATUSES),
        "overdue_invoices": sum(1 for inv in invoices if inv.status == "overdue"),
        "total_revenue": sum(inv.total for inv in paid),
        "recent_invoices": newest[:recent],
    }


def local_date(created_at: datetime, tz: Optional[tzinfo] = None) -> date:
    # stored timestamps are naive UTC
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return created_at.astimezone(tz).date()


def todays_invoices(
    invoices: Iterable[Invoice],
    today: Optional[date] = None,
    tz: Optional[tzinfo] = None,
) -> List[Invoice]:
    """Invoices created on `today` (local calendar date of created_at, not the due date)."""
    today = today or datetime.now(tz).date()
    return [inv for inv in invoices if inv.created_at and local_date(inv.created_at, tz) == today]


def success_rate(paid: int, total: int) -> int:
    if not total:
        return 0
    pct = Decimal(paid) * 100 / Decimal(total)
    return int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def agent_performance(
    agents: Iterable[Agent],
    invoices: Iterable[Invoice],
    today: Optional[date] = None,
    tz: Optional[tzinfo] = None,
    include_directors: bool = False,
) -> List[Dict[str, Any]]:
    invoices = list(invoices)
    today_ids = {inv.id for inv in todays_invoices(invoices, today, tz)}

    rows = []
    for agent in agents:
        if agent.is_director and not include_directors:
            continue
        own = [inv for inv in invoices if inv.agent_id == agent.id]
        paid = [inv for inv in own if inv.status == "paid"]
        rows.append(
            {
                "agent": agent,
                "total_invoices": len(own),
                "today_invoices": sum(1 for inv in own if inv.id in today_ids),
                "total_revenue": sum(inv.total for inv in paid),
                "success_rate": success_rate(len(paid), len(own)),
            }
        )
    return rows
