"""
DataForSEO client — SERP, backlinks and keyword data for the SEO Metrics Hub.

Operations (live endpoints, pay-per-task):
  SERP:
    get_google_serp()            — organic Google SERP for keyword + location code
  Backlinks API:
    get_backlinks_summary()      — totals, referring domains/IPs/subnets, link types
    get_backlinks_history()      — monthly backlink / rank snapshots
    get_anchors()                — anchor text distribution
    get_domain_pages_summary()   — top pages of a domain (by referring domains)
    get_competitors()            — domains sharing backlink sources with the target
  Keywords Data API:
    get_keywords_for_keywords()  — Google Ads keyword ideas with volume, CPC, monthly searches

Credentials:
    DATAFORSEO_LOGIN      your DataForSEO account email
    DATAFORSEO_PASSWORD   your DataForSEO account password

Every method posts a one-element task list and returns the full decoded body
(status_code, cost, tasks[...]). Any failure raises ProviderRequestError.
"""

import base64
import logging
from typing import Optional

import httpx

from utils.errors import ConfigurationError, ProviderRequestError

logger = logging.getLogger(__name__)

DFS_BASE = "https://api.dataforseo.com"
VENDOR = "DataForSEO"

# DataForSEO wraps everything in a status code — 20000 = success
DFS_OK = 20000


class DataForSeoClient:
    def __init__(
        self,
        login: str,
        password: str,
        base_url: str = DFS_BASE,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not login or not password:
            raise ConfigurationError(
                "DATAFORSEO_LOGIN and DATAFORSEO_PASSWORD are required for DataForSEO calls"
            )
        token = base64.b64encode(f"{login}:{password}".encode()).decode()
        self._auth_header = f"Basic {token}"
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    # ── Core HTTP call ───────────────────────────────────────────────────────

    async def _post(self, endpoint: str, task: dict) -> dict:
        """
        Make a single DataForSEO API call with one task.
        Raises ProviderRequestError on transport, HTTP and API-level errors.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    f"{self.base_url}/v3/{endpoint}",
                    headers={
                        "Authorization": self._auth_header,
                        "Content-Type": "application/json",
                    },
                    json=[task],
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"DataForSEO {endpoint} returned HTTP {e.response.status_code}")
            raise ProviderRequestError(
                VENDOR, endpoint, f"HTTP {e.response.status_code}: {e.response.text[:200]}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"DataForSEO {endpoint} request failed: {e!r}")
            raise ProviderRequestError(VENDOR, endpoint, str(e) or type(e).__name__) from e
        except ValueError as e:
            raise ProviderRequestError(VENDOR, endpoint, f"Invalid JSON response: {e}") from e

        if not isinstance(data, dict):
            raise ProviderRequestError(VENDOR, endpoint, "Unexpected DataForSEO response structure")

        if data.get("status_code", DFS_OK) != DFS_OK:
            raise ProviderRequestError(
                VENDOR, endpoint,
                f"DataForSEO error {data['status_code']}: {data.get('status_message', 'Unknown')}",
            )

        tasks = data.get("tasks") or []
        if tasks and isinstance(tasks[0], dict) and tasks[0].get("status_code", DFS_OK) != DFS_OK:
            task_result = tasks[0]
            raise ProviderRequestError(
                VENDOR, endpoint,
                f"DataForSEO task error {task_result['status_code']}: "
                f"{task_result.get('status_message', '')}",
            )

        return data

    # ── SERP ─────────────────────────────────────────────────────────────────

    async def get_google_serp(
        self,
        keyword: str,
        location_code: int,
        language_code: str,
        device: str = "desktop",
    ) -> dict:
        """
        Organic Google SERP, regular mode.

        Args:
            keyword:       Search query
            location_code: DataForSEO location code, e.g. 2840 (United States)
            language_code: e.g. "en"

        Returns:
            Full response; items live at tasks[0].result[0].items
        """
        return await self._post("serp/google/organic/live/regular", {
            "keyword": keyword,
            "location_code": location_code,
            "language_code": language_code,
            "device": device,
        })

    # ── Backlinks API ────────────────────────────────────────────────────────

    async def get_backlinks_summary(
        self,
        target: str,
        rank_scale: str = "one_hundred",
        backlinks_filters: Optional[list] = None,
    ) -> dict:
        """High-level backlink stats for a domain. Endpoint: backlinks/summary/live"""
        return await self._post("backlinks/summary/live", {
            "target": target,
            "rank_scale": rank_scale,
            "backlinks_filters": backlinks_filters or [],
        })

    async def get_backlinks_history(
        self,
        target: str,
        date_from: str,
        date_to: str,
        rank_scale: str = "one_hundred",
    ) -> dict:
        """
        Monthly backlink snapshots between two dates ("YYYY-MM-DD").
        Endpoint: backlinks/history/live
        """
        return await self._post("backlinks/history/live", {
            "target": target,
            "date_from": date_from,
            "date_to": date_to,
            "rank_scale": rank_scale,
        })

    async def get_anchors(self, target: str, limit: int = 25) -> dict:
        """Anchor text distribution. Endpoint: backlinks/anchors/live"""
        return await self._post("backlinks/anchors/live", {
            "target": target,
            "limit": limit or 25,
        })

    async def get_domain_pages_summary(
        self,
        target: str,
        order_by: Optional[list[str]] = None,
        limit: int = 25,
        offset: Optional[int] = None,
        filters: Optional[list] = None,
    ) -> dict:
        """
        Pages of a domain with their own backlink stats.
        Endpoint: backlinks/domain_pages_summary/live

        Args:
            order_by: DataForSEO sort rules, e.g. ["referring_domains,desc"]
        """
        task: dict = {"target": target, "limit": limit or 25}
        if order_by:
            task["order_by"] = order_by
        if offset is not None:
            task["offset"] = offset
        if filters:
            task["filters"] = filters
        return await self._post("backlinks/domain_pages_summary/live", task)

    async def get_competitors(
        self,
        target: str,
        limit: int = 25,
        offset: Optional[int] = None,
        filters: Optional[list] = None,
    ) -> dict:
        """
        Domains that share backlink sources with the target.
        Endpoint: backlinks/competitors/live
        """
        task: dict = {"target": target, "limit": limit or 25}
        if offset is not None:
            task["offset"] = offset
        if filters:
            task["filters"] = filters
        return await self._post("backlinks/competitors/live", task)

    # ── Keywords Data API ────────────────────────────────────────────────────

    async def get_keywords_for_keywords(
        self,
        keywords: list[str],
        location_code: int,
        language_code: str,
        sort_by: str = "search_volume",
        include_serp_info: bool = False,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> dict:
        """
        Google Ads keyword ideas for up to 20 seed keywords, each with
        search volume, CPC, competition, monthly_searches and keyword_annotations.
        Endpoint: keywords_data/google_ads/keywords_for_keywords/live
        """
        task: dict = {
            "keywords": keywords[:20],
            "location_code": location_code,
            "language_code": language_code,
            "sort_by": sort_by,
            "include_serp_info": include_serp_info,
        }
        if date_from:
            task["date_from"] = date_from
        if date_to:
            task["date_to"] = date_to
        return await self._post("keywords_data/google_ads/keywords_for_keywords/live", task)


# ── Response helpers ──────────────────────────────────────────────────────────

def first_result(data: Optional[dict]) -> Optional[dict]:
    """tasks[0].result[0] of a DataForSEO response, or None when absent."""
    try:
        result = data["tasks"][0]["result"][0]
    except (KeyError, IndexError, TypeError):
        return None
    return result if isinstance(result, dict) else None


def result_items(data: Optional[dict]) -> list[dict]:
    """tasks[0].result[0].items of a DataForSEO response, [] when absent."""
    result = first_result(data)
    if not result:
        return []
    return [item for item in (result.get("items") or []) if item]


def task_cost(data: Optional[dict]) -> float:
    """Vendor-reported cost of the first task, 0 when absent."""
    try:
        return data["tasks"][0].get("cost") or 0
    except (KeyError, IndexError, TypeError, AttributeError):
        return 0
