"""
Social signal aggregation for a disaster.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from shared.errors import InputError
from ..providers.twitter import TwitterSearchClient
from .base import Resolver, Strategy, make_key
from .content import ContentAnalyzer, enrich_items


DEFAULT_KEYWORDS = ["flood", "emergency", "disaster"]

# (minutes ago, post)
MOCK_POSTS = [
    (0, {
        "id": "tweet_1",
        "content": "#floodrelief Need food and water in Lower East Side Manhattan. Families stranded.",
        "user": "citizen_helper1",
        "engagement": {"likes": 23, "retweets": 15, "replies": 7},
        "location": "Lower East Side, NYC",
        "urgency": "high"
    }),
    (15, {
        "id": "tweet_2",
        "content": "Brooklyn Bridge area clear, emergency vehicles can pass through #disasterresponse",
        "user": "nycresponse",
        "engagement": {"likes": 45, "retweets": 28, "replies": 3},
        "location": "Brooklyn Bridge, NYC",
        "urgency": "medium"
    }),
    (30, {
        "id": "tweet_3",
        "content": "Shelter open at PS 124 on Avenue B. Hot meals and blankets available #emergencyshelter",
        "user": "redcross_ny",
        "engagement": {"likes": 67, "retweets": 43, "replies": 12},
        "location": "Avenue B, NYC",
        "urgency": "medium"
    }),
    (5, {
        "id": "tweet_4",
        "content": "URGENT: Medical assistance needed at 123 Delancey St. Elderly residents trapped on 3rd floor #SOS",
        "user": "concerned_neighbor",
        "engagement": {"likes": 89, "retweets": 72, "replies": 25},
        "location": "Delancey St, NYC",
        "urgency": "critical"
    }),
]


def normalize_terms(terms: Optional[Sequence[str]], default: Sequence[str]) -> List[str]:
    cleaned = sorted({t.strip().lower() for t in (terms or []) if t and t.strip()})
    return cleaned or list(default)


def matches_keywords(post: Dict[str, Any], keywords: Sequence[str]) -> bool:
    content = (post.get("content") or "").lower()
    location = (post.get("location") or "").lower()
    return any(k.lower() in content or k.lower() in location for k in keywords)


@dataclass
class SocialQuery:
    disaster_id: str
    keywords: List[str] = field(default_factory=list)


class SocialSignalAggregator(Resolver[SocialQuery]):
    """Collects recent social posts mentioning a disaster's keywords."""

    name = "social_signal"
    namespace = "social_media"

    def __init__(
        self,
        cache,
        twitter: Optional[TwitterSearchClient] = None,
        analyzer: Optional[ContentAnalyzer] = None,
        **kwargs
    ):
        super().__init__(cache, **kwargs)
        self.twitter = twitter
        self.analyzer = analyzer

    def validate(self, inputs: SocialQuery) -> None:
        if not inputs.disaster_id or not str(inputs.disaster_id).strip():
            raise InputError("Disaster id is required")

    def cache_key(self, inputs: SocialQuery) -> str:
        keywords = normalize_terms(inputs.keywords, DEFAULT_KEYWORDS)
        return make_key(self.namespace, str(inputs.disaster_id).strip(), *keywords)

    def strategies(self) -> List[Strategy[SocialQuery]]:
        if not self.twitter:
            return []
        return [Strategy("twitter_api", self._search_twitter)]

    async def _search_twitter(self, inputs: SocialQuery) -> Dict[str, Any]:
        posts = await self.twitter.search(normalize_terms(inputs.keywords, DEFAULT_KEYWORDS))
        return self._aggregate(posts, "twitter_api")

    async def offline(self, inputs: SocialQuery) -> Tuple[str, Any]:
        keywords = normalize_terms(inputs.keywords, DEFAULT_KEYWORDS)
        now = self.cache.now()
        posts = []
        for minutes_ago, post in MOCK_POSTS:
            if matches_keywords(post, keywords):
                posts.append({**post, "timestamp": (now - timedelta(minutes=minutes_ago)).isoformat()})
        return "mock_twitter", self._aggregate(posts, "mock_twitter")

    def placeholder(self, inputs: SocialQuery) -> Dict[str, Any]:
        return self._aggregate([], "unavailable")

    async def finalize(self, inputs: SocialQuery, value: Any, provider: str) -> Any:
        if not self.analyzer or not value.get("posts"):
            return value
        return {**value, "posts": await enrich_items(self.analyzer, value["posts"])}

    def _aggregate(self, posts: List[Dict[str, Any]], source: str) -> Dict[str, Any]:
        return {
            "posts": posts,
            "total": len(posts),
            "last_updated": self.cache.now().isoformat(),
            "source": source
        }

    async def fetch(self, disaster_id: str, keywords: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        resolution = await self.resolve(SocialQuery(disaster_id=disaster_id, keywords=list(keywords or [])))
        return resolution.value
