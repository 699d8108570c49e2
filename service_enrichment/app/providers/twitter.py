"""
Twitter (X) recent search client.
"""

from typing import Any, Dict, List, Sequence

from shared.errors import UpstreamError
from .base import ProviderClient


class TwitterSearchClient(ProviderClient):
    """Searches recent posts matching any of a set of keywords."""

    provider = "twitter_api"

    SEARCH_URL = "https://api.twitter.com/2/tweets/search/recent"

    def __init__(self, bearer_token: str, max_results: int = 25, **kwargs):
        super().__init__(**kwargs)
        self.bearer_token = bearer_token
        self.max_results = max(10, min(100, max_results))

    @staticmethod
    def build_query(keywords: Sequence[str]) -> str:
        terms = []
        for keyword in keywords:
            keyword = keyword.strip()
            if not keyword:
                continue
            terms.append(f'"{keyword}"' if " " in keyword else keyword)
        return f"({' OR '.join(terms)}) -is:retweet"

    async def search(self, keywords: Sequence[str]) -> List[Dict[str, Any]]:
        """Return posts shaped like the platform's social report items."""
        data = await self._get_json(
            self.SEARCH_URL,
            params={
                "query": self.build_query(keywords),
                "max_results": self.max_results,
                "tweet.fields": "created_at,public_metrics,geo",
                "expansions": "author_id,geo.place_id",
                "user.fields": "username",
                "place.fields": "full_name"
            },
            headers={"Authorization": f"Bearer {self.bearer_token}"}
        )

        if "errors" in data and "data" not in data:
            raise UpstreamError(self.provider, "search returned errors", {"errors": data["errors"]})

        includes = data.get("includes", {})
        users = {u.get("id"): u.get("username") for u in includes.get("users", [])}
        places = {p.get("id"): p.get("full_name") for p in includes.get("places", [])}

        posts = []
        for tweet in data.get("data", []):
            try:
                metrics = tweet.get("public_metrics", {})
                place_id = (tweet.get("geo") or {}).get("place_id")
                posts.append({
                    "id": tweet["id"],
                    "content": tweet["text"],
                    "user": users.get(tweet.get("author_id"), tweet.get("author_id")),
                    "timestamp": tweet.get("created_at"),
                    "engagement": {
                        "likes": metrics.get("like_count", 0),
                        "retweets": metrics.get("retweet_count", 0),
                        "replies": metrics.get("reply_count", 0)
                    },
                    "location": places.get(place_id)
                })
            except KeyError as e:
                raise UpstreamError(self.provider, "malformed post in search result") from e

        return posts
