"""
Derived authority scores computed from Moz site metrics.

  compute_popularity_score()    — "CF": link-volume popularity, 0-100
  compute_trust_score()         — "TF": link-quality trust with a spam penalty, 0-100
  compute_aggregate_difficulty() — keyword difficulty estimate from the top 10 SERP competitors

All three are heuristics. The shape matters (log compression, multiplicative
spam penalty, round then clamp); the constants are tuning values.
log1p is used everywhere so that zero inputs stay defined.
"""

import math
from typing import Optional

# ── Popularity (CF) ──────────────────────────────────────────────────────────
CF_BASE = 14.0
CF_LOG_WEIGHT = 5.0
CF_RD_WEIGHT = 0.8
CF_DEPTH_BOOST = 0.32

# ── Trust (TF) ───────────────────────────────────────────────────────────────
TF_BASE = 8.5
TF_LOG_SCALING = 6.5
TF_LOG_WEIGHT = 5.78
TF_PA_WEIGHT = 0.065
TF_SPAM_PENALTY_WEIGHT = 0.95
TF_SPAM_EXP = 1.35

# ── Aggregate keyword difficulty ─────────────────────────────────────────────
KD_WEIGHTS = {
    "tf":        0.30,
    "da":        0.25,
    "cf":        0.20,
    "pa":        0.15,
    "rd_factor": 0.10,
}
KD_RD_SCALE = 3.0
KD_RD_CAP = 50.0
KD_SLOPE = 1.55
KD_INTERCEPT = -5.0
KD_MAX_COMPETITORS = 10


def _num(value) -> float:
    """Vendor numbers arrive as int, float, None or occasionally strings."""
    try:
        n = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return n if math.isfinite(n) else 0.0


def _round_clamp(value: float) -> int:
    # Half-up rounding, not banker's rounding: 8.5 -> 9
    return max(0, min(100, math.floor(value + 0.5)))


def compute_popularity_score(metrics: Optional[dict]) -> int:
    """
    Popularity (citation-flow style) score from one site_metrics record.

    Uses external_pages_to_page, link_propensity, indirect_root_domains_to_page
    and root_domains_to_page. Missing fields count as zero.
    """
    metrics = metrics or {}

    external_pages = max(_num(metrics.get("external_pages_to_page")), 1.0)
    referring_domains = max(_num(metrics.get("root_domains_to_page")), 1.0)
    indirect_ref_domains = max(_num(metrics.get("indirect_root_domains_to_page")), 0.0)
    link_propensity = min(1.0, max(_num(metrics.get("link_propensity")), 0.0))

    raw_volume = external_pages * link_propensity
    depth_multiplier = 1.0 + CF_DEPTH_BOOST * math.log1p(indirect_ref_domains)
    log_volume = math.log1p(raw_volume) * depth_multiplier
    log_volume_compressed = math.log1p(log_volume)

    cf = (
        CF_BASE
        + CF_LOG_WEIGHT * log_volume_compressed
        + CF_RD_WEIGHT * math.log1p(referring_domains)
    )
    return _round_clamp(cf)


def compute_trust_score(metrics: Optional[dict]) -> int:
    """
    Trust (trust-flow style) score from one site_metrics record.

    Page authority seeds the score; spam_score (0-17, read as a percentage)
    applies a multiplicative penalty 1 - k * (spam/100)^p.
    """
    metrics = metrics or {}

    page_authority = max(_num(metrics.get("page_authority")), 0.0)
    spam_fraction = min(max(_num(metrics.get("spam_score")), 0.0), 100.0) / 100.0

    trust_seed = page_authority * TF_PA_WEIGHT
    spam_penalty = 1.0 - TF_SPAM_PENALTY_WEIGHT * math.pow(spam_fraction, TF_SPAM_EXP)

    tf_raw = TF_BASE + TF_LOG_WEIGHT * math.log1p(trust_seed * TF_LOG_SCALING)
    return _round_clamp(tf_raw * spam_penalty)


def competitor_strength(competitor: dict) -> float:
    """Weighted blend of tf, DA, cf, PA and a log referring-domain factor for one competitor."""
    rd_factor = min(KD_RD_CAP, math.log1p(max(_num(competitor.get("rootDomains")), 0.0)) * KD_RD_SCALE)
    return (
        KD_WEIGHTS["tf"] * _num(competitor.get("tf"))
        + KD_WEIGHTS["da"] * _num(competitor.get("domainAuthority"))
        + KD_WEIGHTS["cf"] * _num(competitor.get("cf"))
        + KD_WEIGHTS["pa"] * _num(competitor.get("pageAuthority"))
        + KD_WEIGHTS["rd_factor"] * rd_factor
    )


def compute_aggregate_difficulty(competitors: list[dict]) -> int:
    """
    Keyword difficulty (0-100) from competitor records in SERP order.

    Only the first 10 are considered and they are never re-sorted. The average
    strength goes through a fixed linear map, so the result is monotonically
    non-decreasing in the average.
    """
    if not competitors:
        return 0

    considered = competitors[:KD_MAX_COMPETITORS]
    avg_strength = sum(competitor_strength(c) for c in considered) / len(considered)
    return _round_clamp(KD_SLOPE * avg_strength + KD_INTERCEPT)
