"""
app/services/stats_service.py

Purpose: Dashboard overview statistics

- Call totals, today's calls, billable minutes against the plan limit
- Success rate with a rating
- Recent call activity feed
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from app.core.logging import get_logger, LogContext
from app.db.mongo import get_assistants_collection, get_calls_collection
from app.services.client_records import find_client_by_email
from app.services.subscription_service import plan_by_amount, plan_by_name
from utils.time_utils import billable_minutes, parse_date, start_of_day, time_ago

logger = get_logger(__name__)

RECENT_ACTIVITY_LIMIT = 4


def success_rating(rate: int) -> Dict[str, str]:
    if rate >= 80:
        return {"change": "Excellent", "changeType": "increase"}
    if rate >= 60:
        return {"change": "Good", "changeType": "neutral"}
    return {"change": "Needs improvement", "changeType": "decrease"}


async def resolve_plan_limit(user: Dict[str, Any]) -> int:
    """
    Included minutes for the user: latest legacy purchase amount first,
    then the stored plan name, with usage.minutesLimit overriding both.
    """
    limit = 0
    try:
        client = await find_client_by_email(user.get("email"))
    except Exception as e:
        logger.error(f"Error querying client record: {e}")
        client = None

    purchases = [p for p in (client or {}).get("purchases") or [] if isinstance(p, dict)]
    if purchases:
        latest = max(purchases, key=lambda p: parse_date(p.get("created")) or datetime.min)
        plan = plan_by_amount(latest.get("amount_total"))
        if plan:
            limit = plan["minutes"]

    if limit == 0:
        plan = plan_by_name((user.get("subscription") or {}).get("planName"))
        if plan:
            limit = plan["minutes"]

    minutes_limit = (user.get("usage") or {}).get("minutesLimit")
    if minutes_limit:
        limit = minutes_limit
    return limit


def _activity_item(index: int, call: Dict[str, Any], assistant_names: Dict[Any, str], now: datetime) -> Dict[str, Any]:
    name = assistant_names.get(call.get("assistantId"), "Unknown Assistant")
    outcome = call.get("outcome")
    created = parse_date(call.get("createdAt"))
    if outcome == "successful":
        message = f"Call completed - {round((call.get('duration') or 0) / 60)} minutes with {name}"
    else:
        message = f"Call {outcome or 'attempted'} with {name}"
    return {
        "id": index + 1,
        "type": "success" if outcome == "successful" else "call",
        "message": message,
        "time": time_ago(created, now) if created else "Recently",
        "icon": "Phone",
        "color": "text-green-600" if outcome == "successful" else "text-orange-600",
    }


async def get_dashboard_stats(user: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Builds the four dashboard stat cards and the recent activity feed.

    Args:
        user: Authenticated user document
        now: Reference time, defaults to the current UTC time

    Returns:
        Dict with "stats" and "recentActivity"
    """
    now = now or datetime.utcnow()
    user_id = user["_id"]

    with LogContext(user_id=str(user_id)):
        assistants = await get_assistants_collection().find({"userId": user_id}).to_list(length=None)
        active_assistants = sum(1 for a in assistants if a.get("status") == "active")
        assistant_names = {a["_id"]: a.get("name") or "Unknown Assistant" for a in assistants}

        # A failed call query still renders the assistant cards
        calls: List[Dict[str, Any]] = []
        try:
            cursor = get_calls_collection().find({"userId": user_id}).sort("createdAt", -1)
            calls = await cursor.to_list(length=None)
        except Exception as e:
            logger.error(f"Error fetching calls: {e}", exc_info=True)

        # Call metrics
        today = start_of_day(now)
        total_calls = len(calls)
        calls_today = sum(1 for c in calls if (parse_date(c.get("createdAt")) or datetime.min) >= today)
        successful = sum(1 for c in calls if c.get("outcome") == "successful")
        success_rate = round(successful / total_calls * 100) if total_calls else 0
        minutes_used = billable_minutes(sum((c.get("duration") or 0) for c in calls), total_calls)

        # Usage against plan
        plan_limit = await resolve_plan_limit(user)
        percent_used = round(minutes_used / plan_limit * 100) if plan_limit else 0

        stats = [
            {
                "name": "Total Calls",
                "value": str(total_calls),
                "change": f"+{calls_today} today" if calls_today else "No calls today",
                "changeType": "increase" if calls_today else "neutral",
                "icon": "Phone",
                "color": "bg-blue-500",
            },
            {
                "name": "Minutes Used",
                "value": f"{minutes_used}/{plan_limit}",
                "change": f"{percent_used}% used",
                "changeType": "neutral",
                "icon": "Clock",
                "color": "bg-teal-500",
            },
            {
                "name": "Success Rate",
                "value": f"{success_rate}%",
                **success_rating(success_rate),
                "icon": "TrendingUp",
                "color": "bg-green-500",
            },
            {
                "name": "Active Assistants",
                "value": str(active_assistants),
                "change": f"{len(assistants)} total",
                "changeType": "neutral",
                "icon": "Users",
                "color": "bg-purple-500",
            },
        ]

        recent = [
            _activity_item(i, call, assistant_names, now)
            for i, call in enumerate(calls[:RECENT_ACTIVITY_LIMIT])
        ]

        return {"stats": stats, "recentActivity": recent}
