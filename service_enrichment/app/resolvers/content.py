"""
Content analysis resolver and the item enrichment step used by the
social and official aggregators.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from shared.errors import InputError, UpstreamError
from ..providers.gemini import GeminiClient
from .base import Resolver, Strategy, make_key
from .location import match_known_place, match_place_pattern


URGENCY_LEVELS = ("critical", "high", "medium", "low")

URGENCY_KEYWORDS = [
    ("critical", ("urgent", "sos", "trapped", "life-threatening", "immediately", "critical")),
    ("high", ("emergency", "injured", "evacuat", "collapse", "fire", "rising water")),
    ("low", ("resolved", "reopened", "restored", "all clear", "stable")),
]

RESOURCE_KEYWORDS = [
    ("water", ("water", "thirst", "dehydrat")),
    ("food", ("food", "hungry", "meal")),
    ("medical supplies", ("medical", "medicine", "injur", "first aid", "insulin")),
    ("shelter", ("shelter", "homeless", "housing")),
    ("evacuation", ("evacuat", "rescue", "trapped")),
    ("power", ("power", "electric", "generator")),
    ("blankets", ("blanket", "cold", "warm")),
]

ANALYSIS_FIELDS = ("summary", "urgency", "resource_needs", "location_mentioned")

SUMMARY_LIMIT = 140


def classify_urgency(text: str) -> str:
    lowered = text.lower()
    for level, keywords in URGENCY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return level
    return "medium"


def detect_resource_needs(text: str) -> List[str]:
    lowered = text.lower()
    return [need for need, keywords in RESOURCE_KEYWORDS if any(k in lowered for k in keywords)]


def summarize(text: str) -> str:
    first = re.split(r"(?<=[.!?])\s+", text.strip(), maxsplit=1)[0]
    if len(first) > SUMMARY_LIMIT:
        first = first[:SUMMARY_LIMIT - 3].rstrip() + "..."
    return first


def item_text(item: Dict[str, Any]) -> str:
    parts = [item.get("title"), item.get("content")]
    return ". ".join(str(p).strip() for p in parts if p and str(p).strip())


class ContentAnalyzer(Resolver[str]):
    """Summarizes a piece of disaster text and rates its urgency."""

    name = "content_analyzer"
    namespace = "content_analysis"

    def __init__(self, cache, gemini: Optional[GeminiClient] = None, **kwargs):
        super().__init__(cache, **kwargs)
        self.gemini = gemini

    def validate(self, inputs: str) -> None:
        if not isinstance(inputs, str) or not inputs.strip():
            raise InputError("Text is required for content analysis")

    def cache_key(self, inputs: str) -> str:
        return make_key(self.namespace, inputs.strip())

    def strategies(self) -> List[Strategy[str]]:
        if not self.gemini:
            return []
        return [Strategy("gemini", self._ask_gemini)]

    async def _ask_gemini(self, text: str) -> Dict[str, Any]:
        reply = await self.gemini.analyze_content(text)

        urgency = str(reply.get("urgency", "")).strip().lower()
        if urgency not in URGENCY_LEVELS:
            raise UpstreamError("gemini", f"unrecognized urgency {urgency!r}")

        needs = reply.get("resource_needs") or []
        if not isinstance(needs, list):
            needs = [needs]

        return {
            "summary": str(reply.get("summary") or summarize(text)),
            "urgency": urgency,
            "resource_needs": [str(n) for n in needs],
            "location_mentioned": reply.get("location_mentioned") or None
        }

    async def offline(self, inputs: str) -> Tuple[str, Any]:
        return "keyword_rules", {
            "summary": summarize(inputs),
            "urgency": classify_urgency(inputs),
            "resource_needs": detect_resource_needs(inputs),
            "location_mentioned": match_known_place(inputs) or match_place_pattern(inputs)
        }

    def placeholder(self, inputs: str) -> Dict[str, Any]:
        return {
            "summary": "Analysis unavailable",
            "urgency": "medium",
            "resource_needs": [],
            "location_mentioned": None
        }

    async def analyze(self, text: str) -> Dict[str, Any]:
        resolution = await self.resolve(text)
        return resolution.value


async def enrich_items(analyzer: ContentAnalyzer, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Merge an analysis into every item that does not already carry an urgency.

    Items are analyzed one after another.
    """
    enriched = []
    for item in items:
        text = item_text(item)
        if "urgency" in item or not text:
            enriched.append(item)
            continue

        analysis = await analyzer.analyze(text)
        enriched.append({**item, **{field: analysis.get(field) for field in ANALYSIS_FIELDS}})

    return enriched
