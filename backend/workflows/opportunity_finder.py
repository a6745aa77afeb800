"""
Opportunity Finder Workflow
Claude brainstorms ≤10 seed keywords for a niche, DataForSEO expands them into
Google Ads keyword ideas, and the non-brand ideas with the most search volume
are returned with their monthly trend.

Steps:
  1. Claude seed keywords (hard — no text means 500)
  2. Comma split / trim / drop empties (hard — empty list means 500)
  3. DataForSEO keywords_for_keywords (hard)
  4. Keep NON_BRAND concepts only (skipped by the search-volume variant)
  5. Sort by search volume desc, top 100
  6. Expand monthly_searches into "Month Year" labels + volumes
"""

import logging
from typing import Optional

from utils.dataforseo import DataForSeoClient
from utils.errors import ProviderRequestError, WorkflowError
from utils.keyword_generator import KeywordGenerator
from utils.normalizers import process_keyword

logger = logging.getLogger(__name__)

NON_BRAND = "NON_BRAND"
MAX_KEYWORDS = 100
DEFAULT_BUSINESS_MODEL = "No Business Model"
NO_VALID_KEYWORDS = "No valid keywords found"


def split_keywords(text: str) -> list[str]:
    return [k.strip() for k in (text or "").split(",") if k.strip()]


def flatten_task_results(data: Optional[dict]) -> list[dict]:
    """All result entries across every task of a keywords_for_keywords response."""
    results: list[dict] = []
    for task in (data or {}).get("tasks") or []:
        for entry in (task or {}).get("result") or []:
            if entry:
                results.append(entry)
    return results


def is_non_brand(result: dict) -> bool:
    """True when any concept annotation is in the NON_BRAND group. No concepts → False."""
    concepts = (result.get("keyword_annotations") or {}).get("concepts") or []
    return any(
        ((concept or {}).get("concept_group") or {}).get("type") == NON_BRAND
        for concept in concepts
    )


def rank_keywords(results: list[dict], limit: int = MAX_KEYWORDS) -> list[dict]:
    ranked = sorted(results, key=lambda r: r.get("search_volume") or 0, reverse=True)
    return ranked[:limit]


async def _generate_seeds(
    generator: KeywordGenerator,
    niche: str,
    sub_niche: Optional[str],
    business_model: str,
    language_name: str,
    language_code: str,
) -> dict:
    try:
        generation = await generator.generate_keywords(
            niche=niche,
            business_model=business_model,
            language_name=language_name,
            language_code=language_code,
            sub_niche=sub_niche,
        )
    except ProviderRequestError as e:
        logger.error(f"Seed keyword generation failed: {e}")
        raise WorkflowError(500, f"Failed to generate keywords: {e.message}") from e

    if not generation.get("text"):
        raise WorkflowError(500, "No keywords generated")
    return generation


async def run_opportunity_finder(
    generator: KeywordGenerator,
    dataforseo: DataForSeoClient,
    niche: str,
    language_code: str,
    location_code: int,
    language_name: str,
    sub_niche: Optional[str] = None,
    business_model: Optional[str] = None,
    non_brand_only: bool = True,
) -> dict:
    """
    Returns:
        dict: generatedKeywords, totalTokens, keywords, totalKeywords, metadata
    """
    business_model = business_model or DEFAULT_BUSINESS_MODEL
    sub_niche = sub_niche or None

    # 1-2. Seeds
    generation = await _generate_seeds(
        generator, niche, sub_niche, business_model, language_name, language_code,
    )
    seeds = split_keywords(generation["text"])
    if not seeds:
        raise WorkflowError(500, NO_VALID_KEYWORDS)

    # 3. Keyword ideas + metrics
    try:
        metrics = await dataforseo.get_keywords_for_keywords(
            keywords=seeds,
            location_code=location_code,
            language_code=language_code,
            sort_by="search_volume",
        )
    except ProviderRequestError as e:
        logger.error(f"Keyword metrics lookup failed: {e}")
        raise WorkflowError(500, f"Failed to get keyword metrics: {e.message}") from e

    # 4-5. Filter, rank, truncate
    results = flatten_task_results(metrics)
    if non_brand_only:
        results = [r for r in results if is_non_brand(r)]
    top = rank_keywords(results)

    logger.info(f"Opportunity finder: {len(seeds)} seeds → {len(top)} keywords for niche={niche!r}")

    # 6. Monthly trend arrays
    keywords = [process_keyword(r) for r in top]

    return {
        "generatedKeywords": generation["text"],
        "totalTokens":       generation.get("total_tokens") or 0,
        "keywords":          keywords,
        "totalKeywords":     len(keywords),
        "metadata": {
            "niche":         niche,
            "subNiche":      sub_niche,
            "businessModel": business_model,
            "languageCode":  language_code,
            "locationCode":  location_code,
            "languageName":  language_name,
        },
    }


async def run_opportunity_finder_sv(
    generator: KeywordGenerator,
    dataforseo: DataForSeoClient,
    niche: str,
    language_code: str,
    location_code: int,
    language_name: str,
    sub_niche: Optional[str] = None,
    business_model: Optional[str] = None,
) -> dict:
    """Search-volume variant: same pipeline without the non-brand filter."""
    return await run_opportunity_finder(
        generator,
        dataforseo,
        niche=niche,
        language_code=language_code,
        location_code=location_code,
        language_name=language_name,
        sub_niche=sub_niche,
        business_model=business_model,
        non_brand_only=False,
    )
