"""Report shapers: build a GA4 request, run it, flatten rows for the dashboard."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
import math

from .ga_client import ContainsAnyFilter, ReportRequest

SPARKLINE_POINTS = 30

# Old short paths (/mp/) and newer full regional paths (/state/madhya-pradesh/)
STATE_PATH_MAP = {
    "mp": ["/mp/", "/state/madhya-pradesh/"],
    "cg": ["/cg/", "/state/chhattisgarh/"],
    "rj": ["/rj/", "/state/rajasthan/"],
}


def round_half_up(value):
    return int(math.floor(value + 0.5))


def start_of_month(now):
    return now.strftime("%Y-%m-01")


def minutes_elapsed(now):
    return max(now.hour * 60 + now.minute, 1)


def per_minute(total, now):
    return round_half_up(total / minutes_elapsed(now))


def format_duration(seconds):
    """125 -> '2:05'"""
    seconds = int(seconds)
    return f"{seconds // 60}:{seconds % 60:02d}"


def format_bounce_rate(rate):
    """GA4 reports bounceRate as a fraction; 0.4532 -> '45.3%'."""
    return f"{rate * 100:.1f}%"


def build_sparkline(rows):
    """Bucket realtime minutesAgo rows; index 0 is 29 minutes ago, 29 is now."""
    sparkline = [0] * SPARKLINE_POINTS
    for row in rows:
        try:
            minutes_ago = int(row.dimension(0))
        except ValueError:
            continue
        if 0 <= minutes_ago < SPARKLINE_POINTS:
            sparkline[SPARKLINE_POINTS - 1 - minutes_ago] = row.metric_int(0)
    return sparkline


def last_minute_value(rows):
    for row in rows:
        if row.dimension(0) == "0":
            return row.metric_int(0)
    return 0


# ---------- Realtime summary ----------

def realtime_requests(now):
    return {
        # no dimension = GA4's deduplicated "users right now" count
        "total": ReportRequest(metrics=["activeUsers"]),
        "minutes": ReportRequest(metrics=["activeUsers"], dimensions=["minutesAgo"]),
        "today": ReportRequest(
            metrics=["sessions", "screenPageViews"],
            date_range=("today", "today"),
        ),
        "month": ReportRequest(
            metrics=["bounceRate", "averageSessionDuration"],
            date_range=(start_of_month(now), "today"),
        ),
    }


def shape_realtime(total_rows, minute_rows, today_rows, month_rows, now):
    total = total_rows[0] if total_rows else None
    today = today_rows[0] if today_rows else None
    month = month_rows[0] if month_rows else None

    sessions_today = today.metric_int(0) if today else 0
    pageviews_today = today.metric_int(1) if today else 0
    bounce_rate = month.metric_float(0) if month else 0.0
    duration = month.metric_float(1) if month else 0.0

    return {
        "activeUsers": total.metric_int(0) if total else 0,
        "bounceRate": format_bounce_rate(bounce_rate),
        "avgDuration": format_duration(duration),
        "pageviewsPerMin": last_minute_value(minute_rows) or per_minute(pageviews_today, now),
        "newPerMin": per_minute(sessions_today, now),
        "sparkline": build_sparkline(minute_rows),
    }


def realtime_summary(client, now=None):
    """Run the four realtime-card queries together; any failure fails the lot."""
    now = now or datetime.now()
    queries = realtime_requests(now)
    with ThreadPoolExecutor(max_workers=len(queries)) as pool:
        total = pool.submit(client.run_realtime_report, queries["total"])
        minutes = pool.submit(client.run_realtime_report, queries["minutes"])
        today = pool.submit(client.run_report, queries["today"])
        month = pool.submit(client.run_report, queries["month"])
        return shape_realtime(
            total.result(), minutes.result(), today.result(), month.result(), now
        )


# ---------- Top pages (realtime) ----------

def top_pages(client, limit=10):
    rows = client.run_realtime_report(
        ReportRequest(
            metrics=["activeUsers"],
            dimensions=["unifiedScreenName"],
            order_by=("activeUsers", True),
            limit=limit,
        )
    )
    return [
        {"rank": i + 1, "title": row.dimension(0), "activeUsers": row.metric_int(0)}
        for i, row in enumerate(rows)
    ]


# ---------- Region news (last 7 days) ----------

def state_paths(state):
    state = state.lower()
    return STATE_PATH_MAP.get(state, [f"/{state}/"])


def state_news(client, state, limit=5):
    rows = client.run_report(
        ReportRequest(
            metrics=["screenPageViews"],
            dimensions=["pageTitle", "pagePath"],
            date_range=("7daysAgo", "today"),
            dimension_filter=ContainsAnyFilter("pagePath", state_paths(state)),
            order_by=("screenPageViews", True),
            limit=limit,
        )
    )
    return [
        {
            "rank": i + 1,
            "title": row.dimension(0),
            "path": row.dimension(1),
            "views": row.metric_int(0),
        }
        for i, row in enumerate(rows)
    ]


# ---------- Session stats (today) ----------

def session_stats(client):
    rows = client.run_report(
        ReportRequest(
            metrics=["bounceRate", "averageSessionDuration"],
            date_range=("today", "today"),
        )
    )
    row = rows[0] if rows else None
    return {
        "bounceRate": format_bounce_rate(row.metric_float(0) if row else 0.0),
        "avgDuration": format_duration(row.metric_float(1) if row else 0.0),
    }
