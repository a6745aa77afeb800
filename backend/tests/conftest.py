"""
Pytest configuration and shared fixtures
"""
import os
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from utils.dataforseo import DataForSeoClient
from utils.keyword_generator import KeywordGenerator
from utils.moz import MozClient


# ── Vendor payload builders ──────────────────────────────────

def dfs_response(result, cost: float = 0.0, status_code: int = 20000) -> dict:
    """A DataForSEO body with one task wrapping `result` (a list)."""
    return {
        "version": "0.1.20240801",
        "status_code": status_code,
        "status_message": "Ok.",
        "cost": cost,
        "tasks_count": 1,
        "tasks_error": 0,
        "tasks": [{
            "id": "task-1",
            "status_code": 20000,
            "status_message": "Ok.",
            "cost": cost,
            "result_count": len(result or []),
            "result": result,
        }],
    }


def serp_item(rank: int) -> dict:
    return {
        "type": "organic",
        "rank_group": rank,
        "rank_absolute": rank,
        "domain": f"site{rank}.com",
        "title": f"Result {rank}",
        "description": f"Description {rank}",
        "url": f"https://site{rank}.com/page",
    }


def serp_response(count: int = 10) -> dict:
    return dfs_response([{
        "keyword": "running shoes",
        "se_domain": "google.com",
        "items_count": count,
        "items": [serp_item(i) for i in range(1, count + 1)],
    }])


def site_metrics(**overrides) -> dict:
    metrics = {
        "page": "site.com/page",
        "root_domain": "site.com",
        "domain_authority": 50,
        "page_authority": 40,
        "spam_score": 2,
        "external_pages_to_page": 1200,
        "root_domains_to_page": 150,
        "indirect_root_domains_to_page": 300,
        "root_domains_to_root_domain": 2500,
        "link_propensity": 0.02,
    }
    metrics.update(overrides)
    return metrics


def keyword_result(keyword: str, volume: int, non_brand: bool = True, months=None) -> dict:
    concept_type = "NON_BRAND" if non_brand else "BRAND"
    return {
        "keyword": keyword,
        "search_volume": volume,
        "cpc": 1.25,
        "competition": "LOW",
        "competition_index": 20,
        "low_top_of_page_bid": 0.5,
        "high_top_of_page_bid": 2.0,
        "monthly_searches": months if months is not None else [
            {"year": 2025, "month": 8, "search_volume": volume},
            {"year": 2025, "month": 9, "search_volume": volume + 10},
        ],
        "keyword_annotations": {
            "concepts": [{"name": "shoes", "concept_group": {"name": "Others", "type": concept_type}}],
        },
    }


# ── Fake provider clients ────────────────────────────────────

@pytest.fixture
def mock_moz():
    moz = AsyncMock(spec=MozClient)
    # keyword found, no difficulty score yet
    moz.get_keyword_difficulty.return_value = {"keyword_metrics": {}}
    return moz


@pytest.fixture
def mock_dataforseo():
    return AsyncMock(spec=DataForSeoClient)


@pytest.fixture
def mock_generator():
    return AsyncMock(spec=KeywordGenerator)


def fake_anthropic_response(text: str, input_tokens: int = 400, output_tokens: int = 40):
    block = MagicMock()
    block.type = "text"
    block.text = text
    response = MagicMock()
    response.content = [block]
    response.usage.input_tokens = input_tokens
    response.usage.output_tokens = output_tokens
    return response
