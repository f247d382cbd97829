"""
Parameterized SQL queries for per-user click analytics aggregation.

This module provides the read-only PostgreSQL statements used by the metrics
aggregator. All statements join analytics_daily to links on link_id and scope
by links.user_id, so an account with zero links naturally yields zero sums and
empty result sets.

Source tables (owned by the link-management side, never written here):
    links            (id, user_id, slug, is_active)
    analytics_daily  (link_id, date, total_clicks,
                      by_country jsonb, by_source jsonb, by_device jsonb)

Count maps (by_country, by_source, by_device) are JSONB objects of
string key -> integer count and are expanded with jsonb_each_text().

Parameter conventions (asyncpg positional placeholders):
    $1 = user_id, $2 = window start date, $3 = window end date (both inclusive),
    $4 = row limit where applicable.
"""

from typing import Dict


# Breakdown columns that may be expanded by get_top_breakdown_query(),
# mapped to the alias used for the key in the result rows
BREAKDOWN_COLUMNS: Dict[str, str] = {
    "by_country": "country",
    "by_source": "source",
    "by_device": "device",
}


# =============================================================================
# LINK STATS
# =============================================================================

LINK_STATS_QUERY = """
    SELECT
        COUNT(*) AS total_links,
        COUNT(*) FILTER (WHERE is_active) AS active_links
    FROM links
    WHERE user_id = $1
"""


# =============================================================================
# CLICK TOTALS
# =============================================================================

CLICKS_IN_PERIOD_QUERY = """
    SELECT COALESCE(SUM(ad.total_clicks), 0) AS total_clicks
    FROM analytics_daily ad
    JOIN links l ON l.id = ad.link_id
    WHERE l.user_id = $1
      AND ad.date BETWEEN $2 AND $3
"""


# =============================================================================
# TOP LINKS
# =============================================================================

TOP_LINKS_QUERY = """
    SELECT
        l.id::text AS link_id,
        l.slug,
        SUM(ad.total_clicks) AS clicks
    FROM analytics_daily ad
    JOIN links l ON l.id = ad.link_id
    WHERE l.user_id = $1
      AND ad.date BETWEEN $2 AND $3
    GROUP BY l.id, l.slug
    ORDER BY clicks DESC, l.id ASC
    LIMIT $4
"""


# =============================================================================
# TOP BREAKDOWNS (countries / sources / devices)
# =============================================================================

def get_top_breakdown_query(column: str) -> str:
    """
    Generate SQL ranking the keys of a JSONB count map by summed clicks.

    Args:
        column: One of BREAKDOWN_COLUMNS ('by_country', 'by_source', 'by_device').

    Returns:
        str: Parameterized query returning (<alias>, clicks) rows, descending
            by clicks with ties broken by key, limited to $4 rows.

    Raises:
        ValueError: If column is not a known breakdown column.

    Example:
        >>> sql = get_top_breakdown_query('by_country')
        >>> rows = await conn.fetch(sql, user_id, start, end, 10)
        >>> rows[0]['country'], rows[0]['clicks']
        ('US', 600)
    """
    if column not in BREAKDOWN_COLUMNS:
        raise ValueError(f"Unknown breakdown column: {column}")

    alias = BREAKDOWN_COLUMNS[column]

    return f"""
    SELECT
        kv.key AS {alias},
        SUM(kv.value::bigint) AS clicks
    FROM analytics_daily ad
    JOIN links l ON l.id = ad.link_id
    CROSS JOIN LATERAL jsonb_each_text(COALESCE(ad.{column}, '{{}}'::jsonb)) AS kv(key, value)
    WHERE l.user_id = $1
      AND ad.date BETWEEN $2 AND $3
    GROUP BY kv.key
    ORDER BY clicks DESC, kv.key ASC
    LIMIT $4
    """


# =============================================================================
# TIME SERIES
# =============================================================================

DAILY_CLICKS_QUERY = """
    SELECT
        ad.date,
        SUM(ad.total_clicks) AS clicks
    FROM analytics_daily ad
    JOIN links l ON l.id = ad.link_id
    WHERE l.user_id = $1
      AND ad.date BETWEEN $2 AND $3
    GROUP BY ad.date
    ORDER BY ad.date ASC
"""

# analytics_daily.date is a calendar DATE (UTC day); EXTRACT(DOW) yields
# Sunday=0 ... Saturday=6. Days without clicks are absent and zero-filled
# by the caller.
CLICKS_BY_DAY_OF_WEEK_QUERY = """
    SELECT
        EXTRACT(DOW FROM ad.date)::int AS day,
        SUM(ad.total_clicks) AS clicks
    FROM analytics_daily ad
    JOIN links l ON l.id = ad.link_id
    WHERE l.user_id = $1
      AND ad.date BETWEEN $2 AND $3
    GROUP BY 1
"""


__all__ = [
    'BREAKDOWN_COLUMNS',
    'LINK_STATS_QUERY',
    'CLICKS_IN_PERIOD_QUERY',
    'TOP_LINKS_QUERY',
    'get_top_breakdown_query',
    'DAILY_CLICKS_QUERY',
    'CLICKS_BY_DAY_OF_WEEK_QUERY',
]
