"""Social media signal for a disaster.

No live social API is wired in; every source resolves to the mock feed,
which stands in for a Twitter-style keyword search.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from beacon.cache.keys import CacheKeys
from beacon.upstream.cached import CachedUpstream
from beacon.upstream.schemas import SocialFeed, SocialMediaReport

logger = logging.getLogger(__name__)

SOURCES = ("mock", "twitter", "bluesky")
MOCK_SOURCE_NAME = "mock_twitter_api"


def _ago(max_seconds: int) -> str:
    return (datetime.now(UTC) - timedelta(seconds=random.uniform(0, max_seconds))).isoformat()


def mock_reports(keywords: Sequence[str]) -> list[SocialMediaReport]:
    """Curated reports, filtered to those mentioning any keyword."""
    wanted = [k.lower() for k in keywords]
    flood_tag = " #flood" if "flood" in wanted else ""
    shelter_tag = " #shelter" if "shelter" in wanted else ""

    reports = [
        SocialMediaReport(
            id="mock_1",
            user="citizen1",
            content=(
                "#floodrelief Need food and water in lower manhattan area. "
                f"Family of 4 stranded.{flood_tag}"
            ),
            timestamp=_ago(3600),
            urgency="high",
            location_mentioned="Lower Manhattan",
            engagement=random.randint(0, 99),
            verified=False,
        ),
        SocialMediaReport(
            id="mock_2",
            user="emergencyvolunteer",
            content=(
                "Shelter available at community center on 5th street. "
                f"Can accommodate 20 people.{shelter_tag} #disasterrelief"
            ),
            timestamp=_ago(7200),
            urgency="medium",
            location_mentioned="5th Street",
            engagement=random.randint(0, 49),
            verified=True,
        ),
        SocialMediaReport(
            id="mock_3",
            user="localresident",
            content=(
                "Roads completely flooded near central park. Emergency vehicles "
                f"having trouble getting through. #emergency{flood_tag}"
            ),
            timestamp=_ago(1800),
            urgency="high",
            location_mentioned="Central Park",
            engagement=random.randint(0, 199),
            verified=False,
        ),
        SocialMediaReport(
            id="mock_4",
            user="redcross_volunteer",
            content=(
                "Medical aid station set up at Washington Square Park. Treating minor "
                "injuries and providing first aid. #medicalaid #disasterresponse"
            ),
            timestamp=_ago(5400),
            urgency="medium",
            location_mentioned="Washington Square Park",
            engagement=random.randint(0, 74),
            verified=True,
        ),
    ]

    if not wanted:
        return reports
    return [r for r in reports if any(k in r.content.lower() for k in wanted)]


def _empty_feed() -> SocialFeed:
    return SocialFeed(source=MOCK_SOURCE_NAME)


class SocialMediaService:
    def __init__(self, cached: CachedUpstream, ttl: timedelta = timedelta(minutes=5)):
        self.cached = cached
        self.ttl = ttl

    async def get_reports(
        self, disaster_id: str, keywords: Sequence[str] = (), source: str = "mock"
    ) -> SocialFeed:
        """Reports for a disaster, cached per source and keyword set."""
        if source not in SOURCES:
            raise ValueError(f"Unsupported social media source: {source}")
        if source != "mock":
            logger.info("%s integration not configured, using mock data", source)

        async def call() -> SocialFeed:
            reports = mock_reports(keywords)
            logger.info(
                "Generated %d mock social media reports for disaster %s",
                len(reports),
                disaster_id,
            )
            return SocialFeed(reports=reports, total=len(reports), source=MOCK_SOURCE_NAME)

        result = await self.cached.fetch(
            CacheKeys.social_media(source, disaster_id, keywords),
            SocialFeed,
            self.ttl,
            call,
            _empty_feed,
        )
        return result if result is not None else _empty_feed()
