"""
FEMA disasters page scraper.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

from bs4 import BeautifulSoup

from .base import ProviderClient


class FemaScraper(ProviderClient):
    """Scrapes bulletin cards from the FEMA disasters listing."""

    provider = "fema"

    def __init__(self, url: str, user_agent: str, **kwargs):
        super().__init__(**kwargs)
        self.url = url
        self.user_agent = user_agent

    async def fetch_updates(self) -> List[Dict[str, Any]]:
        response = await self._request("GET", self.url, headers={"User-Agent": self.user_agent})
        return self.parse(response.text, self.url)

    @staticmethod
    def parse(html: str, url: str) -> List[Dict[str, Any]]:
        soup = BeautifulSoup(html, "html.parser")
        fetched_at = datetime.now(timezone.utc)
        updates = []

        for index, item in enumerate(soup.select(".disaster-item")):
            title_node = item.select_one(".title")
            content_node = item.select_one(".description")
            date_node = item.select_one(".date")

            title = title_node.get_text(strip=True) if title_node else ""
            content = content_node.get_text(strip=True) if content_node else ""
            if not title or not content:
                continue

            date = date_node.get_text(strip=True) if date_node else ""
            updates.append({
                "id": f"fema_{int(fetched_at.timestamp())}_{index}",
                "title": title,
                "content": content,
                "source": "FEMA",
                "url": url,
                "timestamp": date or fetched_at.isoformat(),
                "severity": "high" if "major" in title.lower() else "medium",
                "category": "declaration"
            })

        return updates
