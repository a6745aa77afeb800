"""
Reshape raw vendor payloads into the flat camelCase records the API returns.
"""

import re
from datetime import datetime
from typing import Optional

from utils.dataforseo import first_result, result_items

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


# ── Domains ───────────────────────────────────────────────────────────────────

def normalize_domain(domain: str) -> str:
    """
    'https://www.Example.com/' → 'example.com'

    Strips the scheme, a leading 'www.' and trailing slashes, lowercases.
    """
    value = (domain or "").strip()
    value = re.sub(r"^https?://", "", value, flags=re.IGNORECASE)
    value = re.sub(r"^www\.", "", value, flags=re.IGNORECASE)
    value = re.sub(r"/+$", "", value)
    return value.strip().lower()


def _ratio(numerator, denominator) -> float:
    # 0 instead of ZeroDivisionError / NaN
    if not denominator:
        return 0
    return (numerator or 0) / denominator


# ── Backlinks summary ─────────────────────────────────────────────────────────

def process_backlinks_summary(data: Optional[dict]) -> Optional[dict]:
    """
    Flatten backlinks/summary/live into summary fields + computed ratios.
    Returns None when the payload has no result.
    """
    item = first_result(data)
    if not item:
        return None

    backlinks = item.get("backlinks") or 0
    referring_pages = item.get("referring_pages") or 0
    broken = item.get("broken_backlinks") or 0
    link_types = item.get("referring_links_types") or {}

    return {
        "rank":               item.get("rank") or 0,
        "referringIPs":       item.get("referring_ips") or 0,
        "referringSubnets":   item.get("referring_subnets") or 0,
        "referringDomains":   item.get("referring_domains") or 0,
        "backlinks":          backlinks,
        "referringPages":     referring_pages,
        "linkTypes": {
            "types":  list(link_types.keys()),
            "values": list(link_types.values()),
        },
        "activeLinksRatio":   _ratio(backlinks - broken, backlinks),
        "dofollowLinksRatio": _ratio(referring_pages, backlinks),
        "avgLinksPerDomain":  _ratio(referring_pages, item.get("referring_domains")),
        "avgLinksPerIP":      _ratio(referring_pages, item.get("referring_ips")),
        "avgLinksPerSubnet":  _ratio(referring_pages, item.get("referring_subnets")),
        "referringLinksCountries": item.get("referring_links_countries") or {},
        "referringLinksTLDs":      item.get("referring_links_tld") or {},
    }


# ── Backlinks history ─────────────────────────────────────────────────────────

def _month_label(date: str) -> str:
    try:
        parsed = datetime.strptime(date, "%Y-%m-%d")
    except ValueError:
        return ""
    return f"{MONTH_NAMES[parsed.month - 1]} {parsed.year}"


def process_backlinks_history(data: Optional[dict]) -> Optional[list[dict]]:
    """
    One flat point per monthly snapshot of backlinks/history/live, vendor order.
    Returns None when the payload has no result.
    """
    result = first_result(data)
    if not result or result.get("items") is None:
        return None

    points = []
    for item in result_items(data):
        date = (item.get("date") or "").split(" ")[0]
        points.append({
            "date":          date,
            "month":         date[:7],
            "monthName":     _month_label(date),
            "rank":          item.get("rank") or 0,
            "backlinks":     item.get("backlinks") or 0,
            "newBacklinks":  item.get("new_backlinks") or 0,
            "lostBacklinks": item.get("lost_backlinks") or 0,
        })
    return points


# ── Anchors / referring domains / top content / competitors ───────────────────

def process_anchors(data: Optional[dict]) -> list[dict]:
    return [
        {
            "anchorText":       item.get("anchor") or "",
            "referringDomains": item.get("referring_domains") or 0,
            "total":            item.get("backlinks") or 0,
        }
        for item in result_items(data)
    ]


def process_top_referring_domains(result: Optional[dict]) -> list[dict]:
    """Moz data.site.linking-domain.list result → [{domain, da, pa, links}]."""
    rows = []
    for entry in (result or {}).get("linking_domains") or []:
        metrics = (entry or {}).get("site_metrics") or {}
        rows.append({
            "domain": metrics.get("root_domain") or "",
            "da":     metrics.get("domain_authority") or 0,
            "pa":     metrics.get("page_authority") or 0,
            "links":  metrics.get("pages_to_root_domain") or 0,
        })
    return rows


def process_top_content(items: list[dict]) -> list[dict]:
    return [
        {
            "url":              item.get("url") or "",
            "referringDomains": item.get("referring_domains") or 0,
            "backlinks":        item.get("backlinks") or 0,
            "rank":             item.get("rank") or 0,
            "domainRank":       item.get("domain_rank") or 0,
            "lastSeen":         item.get("last_seen") or "",
            "firstSeen":        item.get("first_seen") or "",
        }
        for item in items
    ]


def process_link_competitors(items: list[dict]) -> list[dict]:
    return [
        {
            "target":           item.get("target") or "",
            "rank":             item.get("rank") or 0,
            "intersections":    item.get("intersections") or 0,
            "referringDomains": item.get("referring_domains") or 0,
            "backlinks":        item.get("backlinks") or 0,
        }
        for item in items
    ]


def process_backlink(link: dict) -> dict:
    """One Moz data.site.link.list entry → flat backlink row."""
    source = link.get("source_site_metrics") or {}
    target = link.get("target_site_metrics") or {}
    return {
        "sourceUrl":     source.get("page") or "",
        "sourceDomain":  source.get("root_domain") or "",
        "sourceDA":      source.get("domain_authority") or 0,
        "sourcePA":      source.get("page_authority") or 0,
        "targetUrl":     target.get("page") or "",
        "targetDomain":  target.get("root_domain") or "",
        "anchorText":    link.get("anchor_text") or "",
        "dateFirstSeen": link.get("date_first_seen") or "",
        "dateLastSeen":  link.get("date_last_seen") or "",
        "nofollow":      bool(link.get("nofollow")),
        "redirect":      bool(link.get("redirect")),
    }


# ── Keywords ──────────────────────────────────────────────────────────────────

def expand_monthly_searches(monthly_searches: Optional[list[dict]]) -> tuple[list[str], list[int]]:
    """
    Split the vendor monthly_searches array into parallel
    ("Month Year" labels, volumes) lists, preserving vendor order.
    """
    month_years: list[str] = []
    volumes: list[int] = []
    for entry in monthly_searches or []:
        if not entry:
            continue
        month = entry.get("month")
        name = MONTH_NAMES[month - 1] if isinstance(month, int) and 1 <= month <= 12 else ""
        month_years.append(f"{name} {entry.get('year', '')}".strip())
        volumes.append(entry.get("search_volume") or 0)
    return month_years, volumes


def process_keyword(result: dict) -> dict:
    """One keywords_for_keywords result → keyword record with monthly trend arrays."""
    month_years, volumes = expand_monthly_searches(result.get("monthly_searches"))
    return {
        "keyword":              result.get("keyword") or "",
        "searchVolume":         result.get("search_volume") or 0,
        "cpc":                  result.get("cpc") or 0,
        "competition":          result.get("competition") or 0,
        "competitionIndex":     result.get("competition_index") or 0,
        "lowTopOfPageBid":      result.get("low_top_of_page_bid") or 0,
        "highTopOfPageBid":     result.get("high_top_of_page_bid") or 0,
        "monthlySearches":      result.get("monthly_searches") or [],
        "monthYears":           month_years,
        "monthlySearchVolumes": volumes,
        "keywordAnnotations":   result.get("keyword_annotations") or {},
    }
