"""
Official agency bulletin aggregation for a disaster.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from shared.errors import InputError
from ..providers.fema import FemaScraper
from .base import Resolver, Strategy, make_key
from .content import ContentAnalyzer, enrich_items
from .social import normalize_terms


DEFAULT_SOURCES = ["fema", "redcross", "nyc"]

# (minutes ago, bulletin)
MOCK_BULLETINS = [
    (120, {
        "id": "fema_001",
        "title": "FEMA Disaster Declaration - NYC Flooding",
        "content": "Federal Emergency Management Agency has declared a major disaster for New York City "
                   "flooding. Federal aid available to affected residents.",
        "source": "FEMA",
        "url": "https://www.fema.gov/disaster/updates",
        "severity": "high",
        "category": "declaration"
    }),
    (90, {
        "id": "redcross_001",
        "title": "Red Cross Opens Additional Shelters",
        "content": "American Red Cross has opened 5 additional emergency shelters in Manhattan and "
                   "Brooklyn. Capacity for 500 additional evacuees.",
        "source": "American Red Cross",
        "url": "https://www.redcross.org/local/ny/nyc",
        "severity": "medium",
        "category": "resources"
    }),
    (45, {
        "id": "nyc_001",
        "title": "NYC Emergency Alert - Subway Service Suspended",
        "content": "All subway service below 14th Street suspended due to flooding. MTA buses providing "
                   "alternative service. Avoid unnecessary travel.",
        "source": "NYC Emergency Management",
        "url": "https://www1.nyc.gov/site/em/index.page",
        "severity": "high",
        "category": "transportation"
    }),
]


def _compact(text: str) -> str:
    return "".join(text.lower().split())


def matches_source(bulletin: Dict[str, Any], sources: Sequence[str]) -> bool:
    # "redcross" and "red cross" both match "American Red Cross"
    name = _compact(bulletin.get("source", ""))
    return any(_compact(s) in name for s in sources if s.strip())


@dataclass
class BulletinQuery:
    disaster_id: str
    sources: List[str] = field(default_factory=list)


class OfficialBulletinAggregator(Resolver[BulletinQuery]):
    """Collects official bulletins from government and relief agencies."""

    name = "official_bulletins"
    namespace = "official_updates"

    def __init__(
        self,
        cache,
        fema: Optional[FemaScraper] = None,
        analyzer: Optional[ContentAnalyzer] = None,
        **kwargs
    ):
        super().__init__(cache, **kwargs)
        self.fema = fema
        self.analyzer = analyzer

    def validate(self, inputs: BulletinQuery) -> None:
        if not inputs.disaster_id or not str(inputs.disaster_id).strip():
            raise InputError("Disaster id is required")

    def cache_key(self, inputs: BulletinQuery) -> str:
        sources = normalize_terms(inputs.sources, DEFAULT_SOURCES)
        return make_key(self.namespace, str(inputs.disaster_id).strip(), *sources)

    def strategies(self) -> List[Strategy[BulletinQuery]]:
        if not self.fema:
            return []
        return [Strategy("fema", self._scrape_fema)]

    async def _scrape_fema(self, inputs: BulletinQuery) -> Optional[Dict[str, Any]]:
        sources = normalize_terms(inputs.sources, DEFAULT_SOURCES)
        if "fema" not in sources:
            return None

        updates = await self.fema.fetch_updates()
        if not updates:
            return None
        return self._aggregate(updates, sources)

    async def offline(self, inputs: BulletinQuery) -> Tuple[str, Any]:
        sources = normalize_terms(inputs.sources, DEFAULT_SOURCES)
        now = self.cache.now()
        updates = []
        for minutes_ago, bulletin in MOCK_BULLETINS:
            if matches_source(bulletin, sources):
                updates.append({**bulletin, "timestamp": (now - timedelta(minutes=minutes_ago)).isoformat()})
        return "mock", self._aggregate(updates, sources)

    def placeholder(self, inputs: BulletinQuery) -> Dict[str, Any]:
        return self._aggregate([], normalize_terms(inputs.sources, DEFAULT_SOURCES))

    async def finalize(self, inputs: BulletinQuery, value: Any, provider: str) -> Any:
        if not self.analyzer or not value.get("updates"):
            return value
        return {**value, "updates": await enrich_items(self.analyzer, value["updates"])}

    def _aggregate(self, updates: List[Dict[str, Any]], sources: List[str]) -> Dict[str, Any]:
        return {
            "updates": updates,
            "total": len(updates),
            "last_updated": self.cache.now().isoformat(),
            "sources": sources
        }

    async def fetch(self, disaster_id: str, sources: Optional[Sequence[str]] = None) -> Dict[str, Any]:
        resolution = await self.resolve(BulletinQuery(disaster_id=disaster_id, sources=list(sources or [])))
        return resolution.value
