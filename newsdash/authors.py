"""Top authors for the current month.

GA4 has no built-in author dimension, so the one this property uses is
guessed by scanning custom-dimension metadata for author-like names. Only
when that finds nothing is a fixed list of common api names tried, in order,
stopping at the first one that returns real rows. Finding nothing is not
an error; the dashboard just shows an empty list.
"""

from datetime import datetime
import logging

from .ga_client import ReportRequest, UpstreamError
from .reports import round_half_up, start_of_month

logger = logging.getLogger(__name__)

AUTHOR_KEYWORDS = ("author", "writer", "byline")

FALLBACK_DIMENSIONS = [
    "customUser:author",
    "customEvent:author",
    "customUser:Author",
    "customEvent:Author",
    "customUser:writer",
    "customEvent:writer",
]

PLACEHOLDER_NAMES = {"", "(not set)", "(not provided)"}

TOP_AUTHORS = 6


def looks_like_author(dimension):
    text = " ".join(
        [dimension.api_name or "", dimension.ui_name or "", dimension.description or ""]
    ).lower()
    return any(keyword in text for keyword in AUTHOR_KEYWORDS)


def discover_author_dimension(client):
    try:
        custom = client.custom_dimensions()
    except UpstreamError as e:
        logger.warning("Author dimension discovery failed: %s", e)
        return None
    for dim in custom:
        if looks_like_author(dim):
            logger.info("Discovered author dimension %s", dim.api_name)
            return dim.api_name
    return None


def candidate_dimensions(client):
    """Yield the discovered author dimension, or the fixed guesses if none was found."""
    discovered = discover_author_dimension(client)
    if discovered:
        yield discovered
        return
    yield from FALLBACK_DIMENSIONS


def author_rows(client, dimension, now):
    rows = client.run_report(
        ReportRequest(
            metrics=["screenPageViews", "sessions"],
            dimensions=[dimension],
            date_range=(start_of_month(now), "today"),
            order_by=("screenPageViews", True),
            limit=20,
        )
    )
    named = [r for r in rows if r.dimension(0).strip() not in PLACEHOLDER_NAMES]
    return named[:TOP_AUTHORS]


def shape_authors(rows):
    authors = [
        {
            "rank": i + 1,
            "name": row.dimension(0),
            "views": row.metric_int(0),
            "articles": row.metric_int(1),
        }
        for i, row in enumerate(rows)
    ]
    max_views = (authors[0]["views"] if authors else 0) or 1
    for author in authors:
        author["pct"] = round_half_up(author["views"] / max_views * 100)
    return authors


def top_authors(client, now=None):
    now = now or datetime.now()
    for dimension in candidate_dimensions(client):
        try:
            rows = author_rows(client, dimension, now)
        except UpstreamError as e:
            # unknown custom dimensions are rejected by GA4 with a 400
            logger.debug("Author candidate %s rejected: %s", dimension, e)
            continue
        if rows:
            return shape_authors(rows)
    logger.info("No author dimension produced rows")
    return []
