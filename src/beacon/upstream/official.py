"""Official updates from relief agencies.

When ``official_update_urls`` is configured, the pages are fetched and
update-like blocks are extracted with BeautifulSoup. If nothing usable
comes back (or no URLs are configured) a curated set of agency bulletins
is returned instead.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from beacon.cache.keys import CacheKeys
from beacon.upstream.cached import CachedUpstream
from beacon.upstream.schemas import OfficialFeed, OfficialUpdate

logger = logging.getLogger(__name__)

GENERAL = "general"
UPDATE_SELECTOR = "article, .news-item, .update, .alert"
TITLE_SELECTOR = "h1, h2, h3, .title"
CONTENT_SELECTOR = "p, .content, .description"
MAX_CONTENT_LENGTH = 500

MOCK_SOURCES = ["FEMA", "American Red Cross", "NYC Emergency Management", "CDC"]


def _ago(max_seconds: int) -> str:
    return (datetime.now(UTC) - timedelta(seconds=random.uniform(0, max_seconds))).isoformat()


def mock_updates() -> list[OfficialUpdate]:
    return [
        OfficialUpdate(
            id="fema_001",
            source="FEMA",
            title="Emergency Declaration Issued for Flood-Affected Areas",
            content=(
                "Federal Emergency Management Agency has issued an emergency declaration "
                "for affected regions. Federal aid is now available to supplement state "
                "and local response efforts."
            ),
            url="https://www.fema.gov/disaster/current",
            timestamp=_ago(3600),
            priority="high",
            category="official_declaration",
        ),
        OfficialUpdate(
            id="redcross_001",
            source="American Red Cross",
            title="Emergency Shelters Now Open",
            content=(
                "Multiple emergency shelters have been established across affected areas. "
                "Services include temporary housing, meals, and basic necessities for "
                "displaced families."
            ),
            url="https://www.redcross.org/get-help/disaster-relief-and-recovery-services",
            timestamp=_ago(7200),
            priority="high",
            category="shelter_services",
        ),
        OfficialUpdate(
            id="nyc_emergency_001",
            source="NYC Emergency Management",
            title="Public Safety Advisory: Road Closures and Transportation Updates",
            content=(
                "Several major roadways remain closed due to flooding. Public transportation "
                "is operating on limited service. Citizens are advised to avoid "
                "non-essential travel."
            ),
            url="https://www1.nyc.gov/site/em/index.page",
            timestamp=_ago(1800),
            priority="medium",
            category="transportation",
        ),
        OfficialUpdate(
            id="cdc_001",
            source="CDC",
            title="Health and Safety Guidelines for Flood-Affected Areas",
            content=(
                "CDC provides guidance on water safety, food security, and health precautions "
                "following flood events. Avoid contact with floodwater and seek medical "
                "attention for any injuries."
            ),
            url="https://www.cdc.gov/disasters/floods/",
            timestamp=_ago(5400),
            priority="medium",
            category="health_safety",
        ),
    ]


def filter_by_type(updates: Sequence[OfficialUpdate], disaster_type: str) -> list[OfficialUpdate]:
    """Keep updates mentioning the type; declarations always apply."""
    if disaster_type == GENERAL:
        return list(updates)
    wanted = disaster_type.lower()
    return [
        u for u in updates if wanted in u.content.lower() or u.category == "official_declaration"
    ]


def parse_updates(html: str, url: str) -> list[OfficialUpdate]:
    """Extract update blocks with both a title and body from a page."""
    soup = BeautifulSoup(html, "html.parser")
    source = urlparse(url).hostname or url

    updates = []
    for element in soup.select(UPDATE_SELECTOR):
        title_el = element.select_one(TITLE_SELECTOR)
        content_el = element.select_one(CONTENT_SELECTOR)
        title = title_el.get_text().strip() if title_el else ""
        content = content_el.get_text().strip() if content_el else ""
        if title and content:
            updates.append(
                OfficialUpdate(
                    source=source,
                    title=title,
                    content=content[:MAX_CONTENT_LENGTH],
                    url=url,
                )
            )
    return updates


class OfficialUpdatesService:
    def __init__(
        self,
        cached: CachedUpstream,
        http: httpx.AsyncClient,
        urls: Sequence[str] = (),
        ttl: timedelta = timedelta(minutes=30),
        scrape_timeout: float = 10.0,
        user_agent: str = "DisasterResponsePlatform/1.0",
    ):
        self.cached = cached
        self.http = http
        self.urls = list(urls)
        self.ttl = ttl
        self.scrape_timeout = scrape_timeout
        self.user_agent = user_agent

    async def get_official_updates(self, disaster_type: str = GENERAL) -> OfficialFeed:
        disaster_type = disaster_type.strip().lower() or GENERAL

        async def call() -> OfficialFeed:
            return await self._collect(disaster_type)

        result = await self.cached.fetch(
            CacheKeys.official_updates(disaster_type),
            OfficialFeed,
            self.ttl,
            call,
            lambda: self._mock_feed(disaster_type),
        )
        return result if result is not None else self._mock_feed(disaster_type)

    async def scrape(self, url: str) -> list[OfficialUpdate]:
        """Fetch one page and parse its updates. Failures yield no updates."""
        try:
            response = await self.http.get(
                url,
                headers={"User-Agent": self.user_agent},
                timeout=self.scrape_timeout,
                follow_redirects=True,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Web scraping error for %s: %s", url, e)
            return []
        return parse_updates(response.text, url)

    async def _collect(self, disaster_type: str) -> OfficialFeed:
        if self.urls:
            pages = await asyncio.gather(*(self.scrape(url) for url in self.urls))
            scraped = filter_by_type([u for page in pages for u in page], disaster_type)
            if scraped:
                sources = sorted({u.source for u in scraped})
                return OfficialFeed(updates=scraped, total=len(scraped), sources=sources)
            logger.info("No scraped updates for type %s, using curated bulletins", disaster_type)
        return self._mock_feed(disaster_type)

    def _mock_feed(self, disaster_type: str) -> OfficialFeed:
        updates = filter_by_type(mock_updates(), disaster_type)
        logger.info("Generated %d official updates for type: %s", len(updates), disaster_type)
        return OfficialFeed(updates=updates, total=len(updates), sources=list(MOCK_SOURCES))
