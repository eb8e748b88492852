"""
Source reader for the monitored alpha-hunter accounts.

Wraps the tweepy asynchronous client: resolves handles to user ids once per
process, asks only for posts newer than the stored cursor, and drops posts
that are not English or carry none of the relevance keywords. Any API
failure turns into an empty result for that source.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

import tweepy
from tweepy.asynchronous import AsyncClient

from alphascan.schemas import Post, Source

log = logging.getLogger(__name__)

CRYPTO_KEYWORDS = (
    "solana", "sol", "token", "contract", "mint", "liquidity",
    "dex", "trading", "pump", "moon", "gem", "alpha", "ape",
    "launch", "new", "fresh", "deployed", "$", "ca:",
)

TWEET_FIELDS = ["created_at", "public_metrics", "context_annotations", "entities", "lang"]


def is_relevant(text: str, lang: Optional[str]) -> bool:
    if not text or lang != "en":
        return False
    lowered = text.lower()
    return any(k in lowered for k in CRYPTO_KEYWORDS)


def to_post(tweet, username: str) -> Post:
    metrics = getattr(tweet, "public_metrics", None) or {}
    return Post(
        id=str(tweet.id),
        text=tweet.text or "",
        created_at=getattr(tweet, "created_at", None),
        like_count=int(metrics.get("like_count", 0) or 0),
        retweet_count=int(metrics.get("retweet_count", 0) or 0),
        lang=getattr(tweet, "lang", None),
        username=username,
    )


def build_client(bearer_token: str) -> Optional[AsyncClient]:
    if not bearer_token:
        return None
    return AsyncClient(bearer_token=bearer_token, wait_on_rate_limit=False)


class SourceReader:
    """Owns the source list and each source's id / cursor state."""

    def __init__(self, client: Optional[AsyncClient], usernames: Iterable[str]):
        self.client = client
        self.sources: Dict[str, Source] = {u: Source(username=u) for u in usernames}

    @property
    def configured(self) -> bool:
        return self.client is not None

    def hunters(self) -> List[Source]:
        return list(self.sources.values())

    def last_tweet_id(self, username: str) -> Optional[str]:
        src = self.sources.get(username)
        return src.last_tweet_id if src else None

    async def _resolve_user_id(self, source: Source) -> Optional[str]:
        if source.user_id:
            return source.user_id
        resp = await self.client.get_user(username=source.username)
        if not resp or resp.data is None:
            return None
        source.user_id = str(resp.data.id)
        return source.user_id

    async def fetch_recent(self, username: str, max_results: int = 20) -> List[Post]:
        """Newest-first relevant posts from ``username`` newer than its cursor."""
        if self.client is None:
            log.warning("Twitter client not configured, skipping %s", username)
            return []
        source = self.sources.setdefault(username, Source(username=username))
        try:
            user_id = await self._resolve_user_id(source)
            if not user_id:
                log.warning("Could not resolve user id for %s", username)
                return []

            params = {
                "max_results": max_results,
                "tweet_fields": TWEET_FIELDS,
                "exclude": ["retweets", "replies"],
            }
            if source.last_tweet_id:
                params["since_id"] = source.last_tweet_id

            resp = await self.client.get_users_tweets(user_id, **params)
        except tweepy.TweepyException as e:
            log.error("Error fetching tweets for %s: %s", username, e)
            return []
        except Exception as e:
            log.error("Unexpected error fetching tweets for %s: %s", username, e)
            return []

        tweets = list(resp.data or []) if resp else []
        # cursor follows the newest post returned, relevant or not
        if tweets:
            source.last_tweet_id = str(tweets[0].id)

        return [to_post(t, username) for t in tweets if is_relevant(t.text, getattr(t, "lang", None))]

    async def search_mentions(self, address: str, max_results: int = 100) -> List[Post]:
        """Recent posts anywhere that mention ``address``; empty on any failure."""
        if self.client is None:
            return []
        try:
            resp = await self.client.search_recent_tweets(
                f"{address} OR CA:{address}",
                max_results=max_results,
                tweet_fields=["created_at", "public_metrics", "author_id"],
                user_fields=["username"],
                expansions=["author_id"],
            )
        except Exception as e:
            log.error("Tweet search failed for %s: %s", address, e)
            return []

        tweets = list(resp.data or []) if resp else []
        users = (resp.includes or {}).get("users", []) if resp else []
        names = {str(u.id): u.username for u in users}
        return [to_post(t, names.get(str(getattr(t, "author_id", "")), "unknown")) for t in tweets]
