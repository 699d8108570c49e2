"""
Google Gemini client used for location extraction, content analysis and
image authenticity checks.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import google.generativeai as genai

from shared.errors import UpstreamError
from .base import ProviderClient


LOCATION_PROMPT = (
    "Extract the most specific location mentioned in this disaster description. "
    "Return only the location name (city, state/country format if possible), nothing else: \"{text}\""
)

ANALYSIS_PROMPT = """Analyze the following text from a disaster report. Respond with a JSON object with keys:
  1. "summary": a brief one-sentence summary.
  2. "urgency": a single urgency keyword (critical, high, medium, low).
  3. "resource_needs": a JSON array of specific resources needed (e.g. ["water", "medical supplies"]).
  4. "location_mentioned": the most specific location found, or null.

Text: "{text}"
"""

IMAGE_PROMPT = (
    "Analyze this image for authenticity in the context of disaster reporting. Look for signs of "
    "manipulation, inconsistencies, or if it appears to be stock/old footage. Context: {context}. "
    "Respond in JSON format with keys: \"authentic\" (true/false), \"confidence\" (0-1), and "
    "\"analysis\" (a brief explanation)."
)


def parse_json_reply(text: str) -> Dict[str, Any]:
    """Decode a model reply that may be wrapped in a markdown code fence."""
    cleaned = text.strip().replace("```json", "").replace("```", "").strip()
    try:
        data = json.loads(cleaned)
    except ValueError as e:
        raise UpstreamError("gemini", "reply was not valid JSON") from e

    if not isinstance(data, dict):
        raise UpstreamError("gemini", "reply was not a JSON object")
    return data


class GeminiClient(ProviderClient):
    """Thin async wrapper over the Gemini SDK.

    The image download goes through the shared httpx plumbing; model calls go
    through the SDK and are bounded by ``timeout``.
    """

    provider = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        vision_model: Optional[str] = None,
        **kwargs
    ):
        super().__init__(**kwargs)
        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(model)
        self.vision_model = genai.GenerativeModel(vision_model or model)

    async def _generate(self, model: "genai.GenerativeModel", contents: Any) -> str:
        try:
            response = await asyncio.wait_for(
                model.generate_content_async(contents),
                timeout=self.timeout
            )
            text = response.text
        except asyncio.TimeoutError as e:
            raise UpstreamError(self.provider, "generation timed out") from e
        except Exception as e:
            raise UpstreamError(self.provider, f"generation failed: {e}") from e

        if not text or not text.strip():
            raise UpstreamError(self.provider, "empty reply")
        return text.strip()

    async def extract_location(self, text: str) -> str:
        reply = await self._generate(self.model, LOCATION_PROMPT.format(text=text))
        return reply.strip().strip('"').strip()

    async def analyze_content(self, text: str) -> Dict[str, Any]:
        reply = await self._generate(self.model, ANALYSIS_PROMPT.format(text=text))
        return parse_json_reply(reply)

    async def verify_image(self, image_url: str, context: str = "") -> Dict[str, Any]:
        response = await self._request("GET", image_url)
        mime_type = response.headers.get("content-type", "image/jpeg").split(";")[0].strip()
        if not mime_type.startswith("image/"):
            raise UpstreamError(self.provider, f"not an image: {mime_type}")

        contents: List[Any] = [
            IMAGE_PROMPT.format(context=context or "none"),
            {"mime_type": mime_type, "data": response.content}
        ]
        reply = await self._generate(self.vision_model, contents)
        return parse_json_reply(reply)
