"""
Source adapters: pull raw records from one upstream content source.

Adapters only map upstream fields onto `SourceItem` keys; validation happens
per record at ingestion, so one malformed post never sinks the whole fetch.

The set of sources is closed: every adapter is registered under a
`SourceKind` member, and ingestion selects adapters by that enum only.
"""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta
from typing import Any, ClassVar, Generic, TypeVar

import feedparser
import httpx
from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from pulse.core.logging import get_logger
from pulse.core.security import hash_content
from pulse.schemas.schemas import ProductHuntParams, RssFeedParams

logger = get_logger(__name__)

P = TypeVar("P", bound=BaseModel)
RawItem = dict[str, Any]


class SourceKind(str, enum.Enum):
    PRODUCT_HUNT = "product_hunt"
    RSS_FEED = "rss_feed"

    @classmethod
    def _missing_(cls, value: object) -> SourceKind | None:
        # Dashboard clients send the camelCase spelling
        for member in cls:
            if to_camel(member.value) == value:
                return member
        return None


class SourceAdapter(ABC, Generic[P]):
    kind: ClassVar[SourceKind]
    params_model: ClassVar[type[BaseModel]]

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    @abstractmethod
    async def fetch(self, params: P) -> list[RawItem]: ...


# ═══════════════════════════════════════════════════════════════
# Product Hunt (GraphQL API v2)
# ═══════════════════════════════════════════════════════════════
_PRODUCT_HUNT_URL = "https://api.producthunt.com/v2/api/graphql"
_PRODUCT_HUNT_QUERY = """
query RecentPosts($postedAfter: DateTime!) {
  posts(order: VOTES, postedAfter: $postedAfter) {
    edges {
      node {
        id name tagline description url votesCount
        topics { edges { node { name } } }
      }
    }
  }
}
"""


class ProductHuntAdapter(SourceAdapter[ProductHuntParams]):
    kind = SourceKind.PRODUCT_HUNT
    params_model = ProductHuntParams
    source_label = "Product Hunt"

    async def fetch(self, params: ProductHuntParams) -> list[RawItem]:
        posted_after = datetime.now(UTC) - timedelta(days=params.days_back)
        resp = await self.client.post(
            _PRODUCT_HUNT_URL,
            headers={"Authorization": f"Bearer {params.token}"},
            json={
                "query": _PRODUCT_HUNT_QUERY,
                "variables": {"postedAfter": posted_after.isoformat()},
            },
        )
        resp.raise_for_status()
        data = resp.json()

        edges = ((data.get("data") or {}).get("posts") or {}).get("edges") or []
        items: list[RawItem] = []
        for edge in edges:
            node = edge.get("node") or {}
            topics = [
                t["node"]["name"]
                for t in (node.get("topics") or {}).get("edges", [])
                if t.get("node", {}).get("name")
            ]
            items.append(
                {
                    "external_id": f"ph-{node.get('id')}",
                    "product": node.get("name"),
                    "tagline": node.get("tagline") or "",
                    "source": self.source_label,
                    "source_url": node.get("url") or "",
                    "raw_content": node.get("description"),
                    "category": topics[0] if topics else "Uncategorized",
                    "tags": topics[:5],
                }
            )

        logger.info("product_hunt_fetched", item_count=len(items), days_back=params.days_back)
        return items


# ═══════════════════════════════════════════════════════════════
# RSS / Atom feeds (newsletters, blogs)
# ═══════════════════════════════════════════════════════════════
class RssFeedAdapter(SourceAdapter[RssFeedParams]):
    kind = SourceKind.RSS_FEED
    params_model = RssFeedParams

    async def fetch(self, params: RssFeedParams) -> list[RawItem]:
        resp = await self.client.get(params.feed_url, follow_redirects=True)
        resp.raise_for_status()
        feed = feedparser.parse(resp.text)

        items: list[RawItem] = []
        for entry in feed.entries:
            link = entry.get("link", "")
            snippet = entry.get("summary", entry.get("description", "")) or ""
            content_blocks = entry.get("content") or []
            full_text = content_blocks[0].get("value") if content_blocks else None
            tags = [t.get("term") for t in entry.get("tags", []) if t.get("term")]
            items.append(
                {
                    "external_id": f"rss-{hash_content(link or entry.get('title', ''))}",
                    "product": (entry.get("title") or "").strip(),
                    "tagline": snippet[:200],
                    "source": params.source_name,
                    "source_url": link,
                    "raw_content": full_text or snippet,
                    "category": tags[0] if tags else "Uncategorized",
                    "tags": tags[:5],
                }
            )

        logger.info("rss_fetched", feed=params.source_name, item_count=len(items))
        return items


ADAPTERS: dict[SourceKind, type[SourceAdapter]] = {
    SourceKind.PRODUCT_HUNT: ProductHuntAdapter,
    SourceKind.RSS_FEED: RssFeedAdapter,
}


def build_adapter(kind: SourceKind, client: httpx.AsyncClient) -> SourceAdapter:
    return ADAPTERS[kind](client)
