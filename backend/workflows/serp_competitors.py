"""
SERP Competitor Analysis Workflow
Pulls the organic Google SERP for a keyword, enriches the top 10 results with
Moz site metrics, scores each competitor (cf / tf) and reports keyword difficulty.

Data sources:
  DataForSEO SERP API — organic results (hard requirement, 404 when empty)
  Moz                 — keyword difficulty (soft, one retry with fallbackLocale)
  Moz                 — site metrics for the top 10 URLs in one batched call

Keyword difficulty: the Moz value wins when present; the competitor-derived
estimate is only a fallback.
"""

import logging
from typing import Optional

from utils.dataforseo import DataForSeoClient, first_result
from utils.errors import ProviderRequestError, WorkflowError
from utils.moz import MozClient
from utils.scoring import (
    compute_aggregate_difficulty,
    compute_popularity_score,
    compute_trust_score,
)

logger = logging.getLogger(__name__)

TOP_N = 10


async def _fetch_keyword_difficulty(
    moz: MozClient,
    keyword: str,
    locale: str,
    fallback_locale: Optional[str],
) -> Optional[float]:
    """Moz difficulty for `locale`, retried once with `fallback_locale`. None when both fail."""
    attempts = [locale]
    if fallback_locale and fallback_locale != locale:
        attempts.append(fallback_locale)

    for attempt in attempts:
        try:
            result = await moz.get_keyword_difficulty(
                keyword=keyword, locale=attempt, device="desktop", engine="google",
            )
        except ProviderRequestError as e:
            logger.warning(f"Keyword difficulty lookup failed for locale {attempt}: {e.message}")
            continue
        metrics = result.get("keyword_metrics") if isinstance(result, dict) else None
        difficulty = metrics.get("difficulty") if isinstance(metrics, dict) else None
        if isinstance(difficulty, (int, float)) and not isinstance(difficulty, bool):
            return difficulty
        return None

    return None


def _site_query_url(entry: dict) -> str:
    site_query = entry.get("site_query") or {}
    query = site_query.get("query")
    if not query:
        query = (site_query.get("original_site_query") or {}).get("query")
    return query or ""


def match_site_metrics(serp_items: list[dict], metrics_result: Optional[dict]) -> list[dict]:
    """
    One site_metrics dict per SERP item, same order.

    Entries that carry their site query are matched by URL, so a site Moz moved
    into errors_by_site does not shift later competitors. Entries without one
    are zipped by position. Anything unmatched gets {}.
    """
    results = (metrics_result or {}).get("results_by_site") or []

    keyed = {}
    for entry in results:
        url = _site_query_url(entry) if isinstance(entry, dict) else ""
        if url:
            keyed[url] = entry.get("site_metrics") or {}

    if keyed:
        return [keyed.get(item.get("url") or "", {}) for item in serp_items]

    matched = []
    for index, _ in enumerate(serp_items):
        entry = results[index] if index < len(results) else None
        matched.append((entry.get("site_metrics") if isinstance(entry, dict) else None) or {})
    return matched


def build_competitor(item: dict, metrics: dict) -> dict:
    return {
        "url":             item.get("url") or "",
        "title":           item.get("title") or "",
        "description":     item.get("description") or "",
        "rankGroup":       item.get("rank_group"),
        "rankAbsolute":    item.get("rank_absolute"),
        "domain":          metrics.get("root_domain") or item.get("domain") or "",
        "domainAuthority": metrics.get("domain_authority") or 0,
        "pageAuthority":   metrics.get("page_authority") or 0,
        "rootDomains":     metrics.get("root_domains_to_root_domain") or 0,
        "spamScore":       metrics.get("spam_score") or 0,
        "cf":              compute_popularity_score(metrics),
        "tf":              compute_trust_score(metrics),
    }


async def run_serp_competitors(
    moz: MozClient,
    dataforseo: DataForSeoClient,
    keyword: str,
    location_code: int,
    language_code: str,
    country_iso_code: Optional[str] = None,
    fallback_locale: Optional[str] = None,
) -> dict:
    """
    Returns:
        dict: keyword, keywordDifficulty, keywordDifficultySource,
        calculatedKeywordDifficulty, competitors, serpResults
    """
    # 1. SERP — hard requirement
    serp = await dataforseo.get_google_serp(
        keyword=keyword,
        location_code=location_code,
        language_code=language_code,
        device="desktop",
    )
    serp_result = first_result(serp)
    serp_items = [item for item in ((serp_result or {}).get("items") or []) if item]
    if not serp_items:
        raise WorkflowError(404, "No SERP results found")

    # 2. Keyword difficulty — soft
    locale = f"{language_code}-{(country_iso_code or 'US').upper()}"
    vendor_difficulty = await _fetch_keyword_difficulty(moz, keyword, locale, fallback_locale)

    # 3. Site metrics for the top 10 URLs, one batched call
    top_items = serp_items[:TOP_N]
    site_queries = [{"query": item.get("url") or "", "scope": "url"} for item in top_items]
    try:
        metrics_result = await moz.get_multiple_site_metrics(site_queries=site_queries)
    except ProviderRequestError as e:
        logger.warning(f"Site metrics lookup failed, scoring with empty metrics: {e.message}")
        metrics_result = None

    # 4. Score each competitor
    competitors = [
        build_competitor(item, metrics)
        for item, metrics in zip(top_items, match_site_metrics(top_items, metrics_result))
    ]

    # 5. Vendor difficulty first, computed estimate as fallback
    calculated = compute_aggregate_difficulty(competitors)
    if vendor_difficulty is not None:
        difficulty, source = vendor_difficulty, "vendor"
    else:
        difficulty, source = calculated, "computed"

    return {
        "keyword":                     keyword,
        "keywordDifficulty":           difficulty,
        "keywordDifficultySource":     source,
        "calculatedKeywordDifficulty": calculated,
        "competitors":                 competitors,
        "serpResults":                 serp_result,
    }
