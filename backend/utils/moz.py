"""
Moz API client — domain/page authority, spam score, link metrics and keyword
difficulty for the SEO Metrics Hub.

All calls go to the Moz JSON-RPC endpoint:
  Keywords:   data.keyword.metrics.difficulty.fetch
  Site:       data.site.metrics.fetch, data.site.metrics.fetch.multiple,
              data.site.metrics.distributions.fetch
  Links:      data.site.link.list, data.site.linking-domain.list

Auth: `x-moz-token` header. Either pass the token Moz shows on the API
dashboard (MOZ_TOKEN) or the access id + secret key pair (MOZ_ACCESS_ID,
MOZ_SECRET_KEY), which is base64-encoded as "id:secret".

Every method returns the JSON-RPC `result` object. Any failure raises
ProviderRequestError.
"""

import base64
import logging
import uuid
from typing import Literal, Optional

import httpx

from utils.errors import ConfigurationError, ProviderRequestError

logger = logging.getLogger(__name__)

MOZ_URL = "https://api.moz.com/jsonrpc"
VENDOR = "Moz"

Scope = Literal["url", "domain", "subdomain"]


class MozClient:
    def __init__(
        self,
        token: Optional[str] = None,
        access_id: Optional[str] = None,
        secret_key: Optional[str] = None,
        base_url: str = MOZ_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        has_pair = bool(access_id) and bool(secret_key)
        if token and (access_id or secret_key):
            raise ConfigurationError(
                "Moz API takes either 'token' or 'access_id' + 'secret_key', not both"
            )
        if token:
            self.token = token
        elif has_pair:
            self.token = base64.b64encode(f"{access_id}:{secret_key}".encode()).decode()
        else:
            raise ConfigurationError(
                "Moz API requires either MOZ_TOKEN or both MOZ_ACCESS_ID and MOZ_SECRET_KEY"
            )

        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    # ── Core JSON-RPC call ───────────────────────────────────────────────────

    async def _call(self, method: str, params: dict) -> dict:
        """
        Make a single Moz JSON-RPC call and return its `result` object.
        Raises ProviderRequestError on transport, HTTP and JSON-RPC errors.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": f"req-{uuid.uuid4().hex[:12]}",
            "method": method,
            "params": {"data": params},
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    self.base_url,
                    headers={
                        "Content-Type": "application/json",
                        "x-moz-token": self.token,
                    },
                    json=payload,
                )
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Moz {method} returned HTTP {e.response.status_code}")
            raise ProviderRequestError(
                VENDOR, method, f"HTTP {e.response.status_code}: {e.response.text[:200]}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Moz {method} request failed: {e!r}")
            raise ProviderRequestError(VENDOR, method, str(e) or type(e).__name__) from e
        except ValueError as e:
            raise ProviderRequestError(VENDOR, method, f"Invalid JSON response: {e}") from e

        if not isinstance(data, dict):
            raise ProviderRequestError(VENDOR, method, "Unexpected Moz response structure")

        if data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            logger.error(f"Moz {method} error: {error}")
            raise ProviderRequestError(VENDOR, method, message or "Moz API request failed")

        return data.get("result") or {}

    # ── Keyword difficulty ───────────────────────────────────────────────────

    async def get_keyword_difficulty(
        self,
        keyword: str,
        locale: str,
        device: str = "desktop",
        engine: str = "google",
    ) -> dict:
        """
        Keyword difficulty (0-100) for one keyword in one locale, e.g. "en-US".

        Returns:
            dict with serp_query + keyword_metrics.difficulty
        """
        return await self._call("data.keyword.metrics.difficulty.fetch", {
            "serp_query": {
                "keyword": keyword,
                "locale": locale,
                "device": device,
                "engine": engine,
            },
        })

    # ── Site metrics ─────────────────────────────────────────────────────────

    async def get_site_metrics(self, query: str, scope: Scope) -> dict:
        """Site metrics (DA, PA, spam score, link counts) for a single site."""
        return await self._call("data.site.metrics.fetch", {
            "site_query": {"query": query, "scope": scope},
        })

    async def get_multiple_site_metrics(self, site_queries: list[dict]) -> dict:
        """
        Site metrics for several sites in one call.

        Args:
            site_queries: [{"query": "https://...", "scope": "url"}, ...]

        Returns:
            dict with results_by_site (list of {site_query, site_metrics})
            and errors_by_site
        """
        return await self._call("data.site.metrics.fetch.multiple", {
            "site_queries": site_queries,
        })

    async def get_site_metrics_distributions(self, query: str, scope: Scope) -> dict:
        """Distribution buckets (DA / spam score of linking domains, etc.)."""
        return await self._call("data.site.metrics.distributions.fetch", {
            "site_query": {"query": query, "scope": scope},
        })

    # ── Links ────────────────────────────────────────────────────────────────

    async def get_backlinks_list(
        self,
        query: str,
        scope: Scope,
        limit: int = 25,
        offset: Optional[str] = None,
        sort: str = "source_page_authority",
        filters: Optional[list[str]] = None,
    ) -> dict:
        """
        One page of inbound links. `offset` is the pagination token returned
        by the previous page.
        """
        params: dict = {
            "site_query": {"query": query, "scope": scope},
            "options": {
                "limit": limit or 25,
                "sort": sort or "source_page_authority",
                "filters": filters or ["external"],
            },
        }
        if offset:
            params["offset"] = {"provided_token": offset}
        return await self._call("data.site.link.list", params)

    async def get_top_referring_domains(
        self,
        query: str,
        scope: Scope,
        limit: int = 25,
        offset: Optional[str] = None,
    ) -> dict:
        """Top linking root domains for a site."""
        params: dict = {
            "site_query": {"query": query, "scope": scope},
            "options": {"limit": limit or 25},
        }
        if offset:
            params["offset"] = {"provided_token": offset}
        return await self._call("data.site.linking-domain.list", params)
