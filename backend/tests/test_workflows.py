"""
Tests for the SERP competitor, domain metrics, backlinks and opportunity finder workflows
"""
import asyncio
from datetime import date

import pytest

from utils.errors import ProviderRequestError, WorkflowError
from workflows.backlinks import run_backlinks
from workflows.domain_metrics import run_domain_metrics, run_domain_metrics_advanced
from workflows.opportunity_finder import (
    is_non_brand,
    run_opportunity_finder,
    run_opportunity_finder_sv,
    split_keywords,
)
from workflows.serp_competitors import match_site_metrics, run_serp_competitors
from conftest import dfs_response, keyword_result, serp_item, serp_response, site_metrics


def provider_error(operation="op"):
    return ProviderRequestError("Test", operation, "boom")


class TestSerpCompetitors:
    """run_serp_competitors"""

    def run(self, moz, dfs, **overrides):
        kwargs = dict(keyword="running shoes", location_code=2840, language_code="en")
        kwargs.update(overrides)
        return asyncio.run(run_serp_competitors(moz, dfs, **kwargs))

    def test_empty_serp_is_404(self, mock_moz, mock_dataforseo):
        mock_dataforseo.get_google_serp.return_value = dfs_response([{"items": []}])

        with pytest.raises(WorkflowError) as exc_info:
            self.run(mock_moz, mock_dataforseo)

        assert exc_info.value.status_code == 404
        mock_moz.get_multiple_site_metrics.assert_not_called()

    def test_serp_failure_propagates(self, mock_moz, mock_dataforseo):
        mock_dataforseo.get_google_serp.side_effect = provider_error("serp")

        with pytest.raises(ProviderRequestError):
            self.run(mock_moz, mock_dataforseo)

    def test_short_metrics_batch_defaults_to_zero_metrics(self, mock_moz, mock_dataforseo):
        mock_dataforseo.get_google_serp.return_value = serp_response(10)
        mock_moz.get_keyword_difficulty.return_value = {"keyword_metrics": {"difficulty": 37}}
        mock_moz.get_multiple_site_metrics.return_value = {
            "results_by_site": [{"site_metrics": site_metrics()} for _ in range(7)],
        }

        data = self.run(mock_moz, mock_dataforseo)

        competitors = data["competitors"]
        assert len(competitors) == 10
        for zeroed in competitors[7:]:
            assert zeroed["domainAuthority"] == 0
            assert zeroed["cf"] == 15
            assert zeroed["tf"] == 9
        assert competitors[0]["domainAuthority"] == 50

    def test_batches_only_top_ten_urls(self, mock_moz, mock_dataforseo):
        mock_dataforseo.get_google_serp.return_value = serp_response(15)
        mock_moz.get_multiple_site_metrics.return_value = {"results_by_site": []}

        data = self.run(mock_moz, mock_dataforseo)

        queries = mock_moz.get_multiple_site_metrics.call_args.kwargs["site_queries"]
        assert len(queries) == 10
        assert queries[0] == {"query": "https://site1.com/page", "scope": "url"}
        assert len(data["competitors"]) == 10

    def test_vendor_difficulty_wins_over_computed(self, mock_moz, mock_dataforseo):
        mock_dataforseo.get_google_serp.return_value = serp_response(3)
        mock_moz.get_keyword_difficulty.return_value = {"keyword_metrics": {"difficulty": 0}}
        mock_moz.get_multiple_site_metrics.return_value = {
            "results_by_site": [{"site_metrics": site_metrics(domain_authority=90)}] * 3,
        }

        data = self.run(mock_moz, mock_dataforseo)

        assert data["keywordDifficulty"] == 0
        assert data["keywordDifficultySource"] == "vendor"
        assert data["calculatedKeywordDifficulty"] > 0

    def test_locale_built_from_language_and_country(self, mock_moz, mock_dataforseo):
        mock_dataforseo.get_google_serp.return_value = serp_response(1)
        mock_moz.get_multiple_site_metrics.return_value = {}

        self.run(mock_moz, mock_dataforseo, language_code="fr", country_iso_code="fr")

        assert mock_moz.get_keyword_difficulty.call_args.kwargs["locale"] == "fr-FR"

    def test_fallback_locale_retried_once(self, mock_moz, mock_dataforseo):
        mock_dataforseo.get_google_serp.return_value = serp_response(2)
        mock_moz.get_keyword_difficulty.side_effect = [
            provider_error("difficulty"),
            {"keyword_metrics": {"difficulty": 55}},
        ]
        mock_moz.get_multiple_site_metrics.return_value = {}

        data = self.run(mock_moz, mock_dataforseo, fallback_locale="en-GB")

        locales = [c.kwargs["locale"] for c in mock_moz.get_keyword_difficulty.call_args_list]
        assert locales == ["en-US", "en-GB"]
        assert data["keywordDifficulty"] == 55

    def test_difficulty_failures_fall_back_to_computed(self, mock_moz, mock_dataforseo):
        mock_dataforseo.get_google_serp.return_value = serp_response(2)
        mock_moz.get_keyword_difficulty.side_effect = provider_error("difficulty")
        mock_moz.get_multiple_site_metrics.return_value = {}

        data = self.run(mock_moz, mock_dataforseo, fallback_locale="en-GB")

        assert mock_moz.get_keyword_difficulty.call_count == 2
        assert data["keywordDifficultySource"] == "computed"
        assert data["keywordDifficulty"] == data["calculatedKeywordDifficulty"]

    def test_no_retry_without_fallback_locale(self, mock_moz, mock_dataforseo):
        mock_dataforseo.get_google_serp.return_value = serp_response(1)
        mock_moz.get_keyword_difficulty.side_effect = provider_error("difficulty")
        mock_moz.get_multiple_site_metrics.return_value = {}

        self.run(mock_moz, mock_dataforseo)

        assert mock_moz.get_keyword_difficulty.call_count == 1

    def test_site_metrics_failure_scores_with_floor(self, mock_moz, mock_dataforseo):
        mock_dataforseo.get_google_serp.return_value = serp_response(2)
        mock_moz.get_multiple_site_metrics.side_effect = provider_error("metrics")

        data = self.run(mock_moz, mock_dataforseo)

        assert [c["cf"] for c in data["competitors"]] == [15, 15]

    @pytest.mark.parametrize("payload", [
        None,
        "oops",
        {"keyword_metrics": ["x"]},
        {"keyword_metrics": {"difficulty": "high"}},
    ])
    def test_malformed_difficulty_falls_back_to_computed(self, mock_moz, mock_dataforseo, payload):
        mock_dataforseo.get_google_serp.return_value = serp_response(2)
        mock_moz.get_keyword_difficulty.return_value = payload
        mock_moz.get_multiple_site_metrics.return_value = {}

        data = self.run(mock_moz, mock_dataforseo)

        assert data["keywordDifficultySource"] == "computed"
        assert data["keywordDifficulty"] == data["calculatedKeywordDifficulty"]

    def test_failed_site_does_not_shift_later_metrics(self, mock_moz, mock_dataforseo):
        mock_dataforseo.get_google_serp.return_value = serp_response(3)
        mock_moz.get_multiple_site_metrics.return_value = {
            "results_by_site": [
                {"site_query": {"query": "https://site1.com/page"},
                 "site_metrics": site_metrics(domain_authority=11)},
                {"site_query": {"query": "https://site3.com/page"},
                 "site_metrics": site_metrics(domain_authority=33)},
            ],
            "errors_by_site": [{"site_query": {"query": "https://site2.com/page"}}],
        }

        data = self.run(mock_moz, mock_dataforseo)

        assert [c["domainAuthority"] for c in data["competitors"]] == [11, 0, 33]


class TestMatchSiteMetrics:
    """match_site_metrics"""

    def test_matches_by_url_when_queries_are_carried(self):
        items = [serp_item(1), serp_item(2)]
        result = {"results_by_site": [
            {"site_query": {"query": "https://site2.com/page"}, "site_metrics": {"domain_authority": 2}},
            {"site_query": {"query": "https://site1.com/page"}, "site_metrics": {"domain_authority": 1}},
        ]}
        matched = match_site_metrics(items, result)
        assert [m["domain_authority"] for m in matched] == [1, 2]

    def test_skipped_middle_url_gets_empty_metrics(self):
        items = [serp_item(1), serp_item(2), serp_item(3)]
        result = {"results_by_site": [
            {"site_query": {"query": "https://site1.com/page"}, "site_metrics": {"domain_authority": 11}},
            {"site_query": {"query": "https://site3.com/page"}, "site_metrics": {"domain_authority": 33}},
        ]}
        matched = match_site_metrics(items, result)
        assert [m.get("domain_authority") for m in matched] == [11, None, 33]

    def test_positional_without_queries(self):
        items = [serp_item(1), serp_item(2), serp_item(3)]
        result = {"results_by_site": [{"site_metrics": {"domain_authority": 9}}, None]}
        assert match_site_metrics(items, result) == [{"domain_authority": 9}, {}, {}]

    def test_none_result(self):
        assert match_site_metrics([serp_item(1)], None) == [{}]


class TestDomainMetrics:
    """run_domain_metrics / run_domain_metrics_advanced"""

    def setup_moz(self, moz):
        moz.get_site_metrics.return_value = {"site_metrics": site_metrics()}
        moz.get_site_metrics_distributions.return_value = {"distributions": {"spam_score": [1, 2]}}
        moz.get_top_referring_domains.return_value = {"linking_domains": []}

    def test_normalizes_domain_and_history_window(self, mock_moz, mock_dataforseo):
        self.setup_moz(mock_moz)
        mock_dataforseo.get_backlinks_summary.return_value = dfs_response([{"backlinks": 10}])
        mock_dataforseo.get_backlinks_history.return_value = dfs_response([{"items": []}])
        mock_dataforseo.get_anchors.return_value = dfs_response([{"items": []}])

        data = asyncio.run(run_domain_metrics(
            mock_moz, mock_dataforseo, "https://www.Example.com/", today=date(2026, 3, 15),
        ))

        assert data["domain"] == "example.com"
        assert mock_moz.get_site_metrics.call_args.kwargs == {
            "query": "https://example.com/", "scope": "domain",
        }
        history_kwargs = mock_dataforseo.get_backlinks_history.call_args.kwargs
        assert history_kwargs["date_to"] == "2026-03-15"
        assert history_kwargs["date_from"] == "2025-03-15"
        assert mock_dataforseo.get_anchors.call_args.kwargs["target"] == "example.com"

    def test_history_failure_is_soft(self, mock_moz, mock_dataforseo):
        self.setup_moz(mock_moz)
        mock_dataforseo.get_backlinks_summary.return_value = dfs_response([{"backlinks": 10}])
        mock_dataforseo.get_backlinks_history.side_effect = provider_error("history")
        mock_dataforseo.get_anchors.return_value = dfs_response([{"items": [{"anchor": "ex"}]}])

        data = asyncio.run(run_domain_metrics(mock_moz, mock_dataforseo, "example.com"))

        assert data["backlinksHistory"] is None
        assert data["backlinksSummary"]["backlinks"] == 10
        assert data["anchors"][0]["anchorText"] == "ex"
        assert data["siteMetrics"]["domain_authority"] == 50

    def test_every_sub_fetch_failing_still_returns(self, mock_moz, mock_dataforseo):
        for method in ("get_site_metrics", "get_site_metrics_distributions", "get_top_referring_domains"):
            getattr(mock_moz, method).side_effect = provider_error(method)
        for method in ("get_backlinks_summary", "get_backlinks_history", "get_anchors"):
            getattr(mock_dataforseo, method).side_effect = provider_error(method)

        data = asyncio.run(run_domain_metrics(mock_moz, mock_dataforseo, "example.com"))

        assert data == {
            "domain": "example.com",
            "siteMetrics": {},
            "distributions": {},
            "topReferringDomains": [],
            "backlinksSummary": None,
            "backlinksHistory": None,
            "anchors": [],
        }

    def test_advanced_sums_costs(self, mock_dataforseo):
        mock_dataforseo.get_domain_pages_summary.return_value = dfs_response(
            [{"items": [{"url": "https://example.com/a", "referring_domains": 30}]}], cost=0.02,
        )
        mock_dataforseo.get_competitors.return_value = dfs_response(
            [{"items": [{"target": "rival.com", "intersections": 12}]}], cost=0.03,
        )

        data = asyncio.run(run_domain_metrics_advanced(mock_dataforseo, "www.example.com"))

        assert data["domain"] == "example.com"
        assert data["topContent"]["totalCount"] == 1
        assert data["topContent"]["items"][0]["referringDomains"] == 30
        assert data["competitors"]["items"][0]["target"] == "rival.com"
        assert data["totalCost"] == pytest.approx(0.05)

    def test_advanced_competitors_failure_is_soft(self, mock_dataforseo):
        mock_dataforseo.get_domain_pages_summary.return_value = dfs_response([{"items": []}], cost=0.02)
        mock_dataforseo.get_competitors.side_effect = provider_error("competitors")

        data = asyncio.run(run_domain_metrics_advanced(mock_dataforseo, "example.com"))

        assert data["competitors"] == {"items": [], "totalCount": 0, "cost": 0}
        assert data["totalCost"] == pytest.approx(0.02)


class TestBacklinks:
    """run_backlinks"""

    def test_pagination(self, mock_moz):
        mock_moz.get_backlinks_list.return_value = {
            "links": [{"anchor_text": "a"}, {"anchor_text": "b"}],
            "offset": {"token": "page-2"},
        }

        data = asyncio.run(run_backlinks(mock_moz, "example.com", limit=2))

        assert data["total"] == 2
        assert data["pagination"] == {"limit": 2, "nextOffset": "page-2", "hasMore": True}
        assert mock_moz.get_backlinks_list.call_args.kwargs["filters"] == ["external"]

    def test_last_page(self, mock_moz):
        mock_moz.get_backlinks_list.return_value = {"links": []}

        data = asyncio.run(run_backlinks(mock_moz, "example.com"))

        assert data["pagination"]["hasMore"] is False
        assert data["backlinks"] == []


class TestOpportunityFinder:
    """run_opportunity_finder / run_opportunity_finder_sv"""

    def run(self, generator, dfs, finder=run_opportunity_finder, **overrides):
        kwargs = dict(niche="footwear", language_code="en", location_code=2840, language_name="English")
        kwargs.update(overrides)
        return asyncio.run(finder(generator, dfs, **kwargs))

    def test_split_keywords(self):
        assert split_keywords(" shoes, boots ,, sandals ,") == ["shoes", "boots", "sandals"]
        assert split_keywords(" , ,") == []

    def test_is_non_brand_requires_concepts(self):
        assert is_non_brand(keyword_result("shoes", 10)) is True
        assert is_non_brand(keyword_result("nike", 10, non_brand=False)) is False
        assert is_non_brand({"keyword": "shoes"}) is False
        assert is_non_brand({"keyword_annotations": {"concepts": []}}) is False

    def test_no_generated_text_is_500(self, mock_generator, mock_dataforseo):
        mock_generator.generate_keywords.return_value = {"text": "", "total_tokens": 10}

        with pytest.raises(WorkflowError) as exc_info:
            self.run(mock_generator, mock_dataforseo)

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "No keywords generated"
        mock_dataforseo.get_keywords_for_keywords.assert_not_called()

    def test_only_commas_is_500(self, mock_generator, mock_dataforseo):
        mock_generator.generate_keywords.return_value = {"text": ", ,", "total_tokens": 10}

        with pytest.raises(WorkflowError) as exc_info:
            self.run(mock_generator, mock_dataforseo)

        assert exc_info.value.message == "No valid keywords found"

    def test_generation_failure_is_500(self, mock_generator, mock_dataforseo):
        mock_generator.generate_keywords.side_effect = provider_error("messages.create")

        with pytest.raises(WorkflowError) as exc_info:
            self.run(mock_generator, mock_dataforseo)

        assert exc_info.value.message.startswith("Failed to generate keywords")

    def test_metrics_failure_is_500(self, mock_generator, mock_dataforseo):
        mock_generator.generate_keywords.return_value = {"text": "shoes", "total_tokens": 10}
        mock_dataforseo.get_keywords_for_keywords.side_effect = provider_error("keywords_for_keywords")

        with pytest.raises(WorkflowError) as exc_info:
            self.run(mock_generator, mock_dataforseo)

        assert exc_info.value.message.startswith("Failed to get keyword metrics")

    def test_results_without_concepts_are_dropped(self, mock_generator, mock_dataforseo):
        mock_generator.generate_keywords.return_value = {"text": "shoes, boots, sandals", "total_tokens": 50}
        mock_dataforseo.get_keywords_for_keywords.return_value = dfs_response([
            {"keyword": "shoes", "search_volume": 1000},
            {"keyword": "boots", "search_volume": 800},
            {"keyword": "sandals", "search_volume": 600},
        ])

        data = self.run(mock_generator, mock_dataforseo)

        assert data["keywords"] == []
        assert data["totalKeywords"] == 0
        assert mock_dataforseo.get_keywords_for_keywords.call_args.kwargs["keywords"] == [
            "shoes", "boots", "sandals",
        ]

    def test_filters_sorts_and_truncates(self, mock_generator, mock_dataforseo):
        mock_generator.generate_keywords.return_value = {"text": "shoes", "total_tokens": 50}
        results = [keyword_result(f"kw {i}", i * 10) for i in range(120)]
        results.append(keyword_result("brand shoes", 999999, non_brand=False))
        body = dfs_response(results[:60])
        body["tasks"].append(dfs_response(results[60:])["tasks"][0])
        mock_dataforseo.get_keywords_for_keywords.return_value = body

        data = self.run(mock_generator, mock_dataforseo, business_model=None)

        volumes = [k["searchVolume"] for k in data["keywords"]]
        assert len(volumes) == 100
        assert volumes == sorted(volumes, reverse=True)
        assert volumes[0] == 1190
        assert "brand shoes" not in [k["keyword"] for k in data["keywords"]]
        assert data["metadata"]["businessModel"] == "No Business Model"
        assert data["totalTokens"] == 50

    def test_monthly_arrays_parallel(self, mock_generator, mock_dataforseo):
        mock_generator.generate_keywords.return_value = {"text": "shoes", "total_tokens": 5}
        months = [
            {"year": 2025, "month": 10, "search_volume": 30},
            {"year": 2025, "month": 11, "search_volume": 40},
            {"year": 2025, "month": 12, "search_volume": 50},
        ]
        mock_dataforseo.get_keywords_for_keywords.return_value = dfs_response(
            [keyword_result("shoes", 40, months=months)],
        )

        keyword = self.run(mock_generator, mock_dataforseo)["keywords"][0]

        assert keyword["monthYears"] == ["October 2025", "November 2025", "December 2025"]
        assert keyword["monthlySearchVolumes"] == [30, 40, 50]

    def test_search_volume_variant_keeps_brand_terms(self, mock_generator, mock_dataforseo):
        mock_generator.generate_keywords.return_value = {"text": "shoes", "total_tokens": 5}
        mock_dataforseo.get_keywords_for_keywords.return_value = dfs_response([
            {"keyword": "plain", "search_volume": 10},
            keyword_result("brand shoes", 500, non_brand=False),
        ])

        data = self.run(mock_generator, mock_dataforseo, finder=run_opportunity_finder_sv)

        assert [k["keyword"] for k in data["keywords"]] == ["brand shoes", "plain"]
