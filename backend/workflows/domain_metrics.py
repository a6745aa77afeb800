"""
Domain Metrics Workflows
Authority, link profile and history for one domain, assembled from Moz and
DataForSEO. Every sub-fetch is optional: a failure is logged and its field
degrades to an empty value, the request still succeeds.

run_domain_metrics():
  Moz         — site metrics, metrics distributions, top referring domains
  DataForSEO  — backlinks summary (dofollow), 365-day backlinks history, anchors

run_domain_metrics_advanced():
  DataForSEO  — top pages by referring domains, link competitors, summed task cost
"""

import logging
from datetime import date, timedelta
from typing import Awaitable, Optional

from utils.dataforseo import DataForSeoClient, result_items, task_cost
from utils.errors import ProviderRequestError
from utils.moz import MozClient
from utils.normalizers import (
    normalize_domain,
    process_anchors,
    process_backlinks_history,
    process_backlinks_summary,
    process_link_competitors,
    process_top_content,
    process_top_referring_domains,
)

logger = logging.getLogger(__name__)

HISTORY_WINDOW_DAYS = 365
LIST_LIMIT = 25


async def _optional(label: str, call: Awaitable) -> Optional[dict]:
    """Await a provider call; None (and a warning) when it fails."""
    try:
        return await call
    except ProviderRequestError as e:
        logger.warning(f"Failed to get {label}: {e}")
        return None


async def run_domain_metrics(
    moz: MozClient,
    dataforseo: DataForSeoClient,
    domain: str,
    today: Optional[date] = None,
) -> dict:
    """
    Returns:
        dict: domain, siteMetrics, distributions, topReferringDomains,
        backlinksSummary, backlinksHistory, anchors
    """
    formatted = normalize_domain(domain)
    http_domain = f"https://{formatted}/"

    today = today or date.today()
    date_to = today.isoformat()
    date_from = (today - timedelta(days=HISTORY_WINDOW_DAYS)).isoformat()

    # Sequential on purpose; each call is independent and isolated
    site_metrics = await _optional(
        "site metrics",
        moz.get_site_metrics(query=http_domain, scope="domain"),
    )
    distributions = await _optional(
        "site metrics distributions",
        moz.get_site_metrics_distributions(query=http_domain, scope="url"),
    )
    referring_domains = await _optional(
        "top referring domains",
        moz.get_top_referring_domains(query=http_domain, scope="url", limit=LIST_LIMIT),
    )
    summary = await _optional(
        "backlinks summary",
        dataforseo.get_backlinks_summary(
            target=formatted,
            rank_scale="one_hundred",
            backlinks_filters=["dofollow", "=", True],
        ),
    )
    history = await _optional(
        "backlinks history",
        dataforseo.get_backlinks_history(
            target=formatted,
            date_from=date_from,
            date_to=date_to,
            rank_scale="one_hundred",
        ),
    )
    anchors = await _optional(
        "anchors",
        dataforseo.get_anchors(target=formatted, limit=LIST_LIMIT),
    )

    return {
        "domain":              formatted,
        "siteMetrics":         (site_metrics or {}).get("site_metrics") or {},
        "distributions":       (distributions or {}).get("distributions") or {},
        "topReferringDomains": process_top_referring_domains(referring_domains),
        "backlinksSummary":    process_backlinks_summary(summary),
        "backlinksHistory":    process_backlinks_history(history),
        "anchors":             process_anchors(anchors),
    }


async def run_domain_metrics_advanced(
    dataforseo: DataForSeoClient,
    domain: str,
) -> dict:
    """
    Returns:
        dict: domain, topContent {items, totalCount, cost},
        competitors {items, totalCount, cost}, totalCost
    """
    formatted = normalize_domain(domain)

    top_content_raw = await _optional(
        "top content",
        dataforseo.get_domain_pages_summary(
            target=formatted,
            order_by=["referring_domains,desc"],
            limit=LIST_LIMIT,
        ),
    )
    competitors_raw = await _optional(
        "competitors",
        dataforseo.get_competitors(target=formatted, limit=LIST_LIMIT),
    )

    top_content = result_items(top_content_raw)
    competitors = result_items(competitors_raw)
    top_content_cost = task_cost(top_content_raw)
    competitors_cost = task_cost(competitors_raw)

    return {
        "domain": formatted,
        "topContent": {
            "items":      process_top_content(top_content),
            "totalCount": len(top_content),
            "cost":       top_content_cost,
        },
        "competitors": {
            "items":      process_link_competitors(competitors),
            "totalCount": len(competitors),
            "cost":       competitors_cost,
        },
        "totalCost": top_content_cost + competitors_cost,
    }
