"""
Backlinks Checker Workflow
One page of external inbound links for a domain from Moz, flattened.
"""

import logging
from typing import Optional

from utils.moz import MozClient
from utils.normalizers import process_backlink

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 25
DEFAULT_SORT = "source_page_authority"


async def run_backlinks(
    moz: MozClient,
    domain: str,
    limit: int = DEFAULT_LIMIT,
    offset: Optional[str] = None,
    sort: str = DEFAULT_SORT,
) -> dict:
    """
    Returns:
        dict: backlinks, pagination {limit, nextOffset, hasMore}, total
    """
    result = await moz.get_backlinks_list(
        query=domain,
        scope="url",
        limit=limit,
        offset=offset,
        sort=sort,
        filters=["external"],
    )

    links = [link for link in (result.get("links") or []) if link]
    next_offset = (result.get("offset") or {}).get("token") or result.get("next_token")

    logger.info(f"Fetched {len(links)} backlinks for {domain}")

    return {
        "backlinks": [process_backlink(link) for link in links],
        "pagination": {
            "limit":      limit,
            "nextOffset": next_offset,
            "hasMore":    bool(next_offset),
        },
        "total": len(links),
    }
