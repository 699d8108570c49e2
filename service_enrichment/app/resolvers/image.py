"""
Image authenticity resolver.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from shared.errors import InputError, UpstreamError
from ..providers.gemini import GeminiClient
from .base import Resolution, Resolver, Strategy, make_key


MANUAL_REVIEW_ANALYSIS = "Automated verification unavailable - manual review required"


@dataclass
class ImageCheck:
    image_url: str
    context: str = ""


def parse_authentic(value: Any) -> bool:
    """Read a model's authenticity flag; anything but a boolean or "true"/"false" is rejected."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise UpstreamError("gemini", f"unrecognized authentic value {value!r}")


def verification_status(verdict: Dict[str, Any]) -> str:
    return "verified" if verdict.get("authentic") else "flagged"


class ImageAuthenticityResolver(Resolver[ImageCheck]):
    """Asks Gemini vision whether a report image looks genuine.

    Results are keyed on the URL alone; the context only shapes the prompt.
    """

    name = "image_authenticity"
    namespace = "image_verify"

    def __init__(self, cache, gemini: Optional[GeminiClient] = None, **kwargs):
        super().__init__(cache, **kwargs)
        self.gemini = gemini

    def validate(self, inputs: ImageCheck) -> None:
        url = (inputs.image_url or "").strip()
        if not url:
            raise InputError("Image URL is required")

        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InputError("Image URL must be an http or https URL", {"image_url": url})

    def cache_key(self, inputs: ImageCheck) -> str:
        return make_key(self.namespace, inputs.image_url.strip())

    def strategies(self) -> List[Strategy[ImageCheck]]:
        if not self.gemini:
            return []
        return [Strategy("gemini", self._ask_gemini)]

    async def _ask_gemini(self, inputs: ImageCheck) -> Dict[str, Any]:
        reply = await self.gemini.verify_image(inputs.image_url.strip(), inputs.context)
        if "authentic" not in reply:
            raise UpstreamError("gemini", "verdict missing 'authentic'")

        try:
            confidence = float(reply.get("confidence", 0.5))
        except (TypeError, ValueError) as e:
            raise UpstreamError("gemini", "confidence was not a number") from e

        return {
            "authentic": parse_authentic(reply["authentic"]),
            "confidence": min(1.0, max(0.0, confidence)),
            "analysis": str(reply.get("analysis", ""))
        }

    async def offline(self, inputs: ImageCheck) -> Tuple[str, Any]:
        return "placeholder", self.placeholder(inputs)

    def placeholder(self, inputs: ImageCheck) -> Dict[str, Any]:
        return {
            "authentic": True,
            "confidence": 0.5,
            "analysis": MANUAL_REVIEW_ANALYSIS
        }

    async def resolve_url(self, image_url: Optional[str], context: Optional[str] = None) -> Resolution:
        return await self.resolve(ImageCheck(image_url=image_url or "", context=context or ""))

    async def verify(self, image_url: str, context: str = "") -> Dict[str, Any]:
        resolution = await self.resolve_url(image_url, context)
        return resolution.value
