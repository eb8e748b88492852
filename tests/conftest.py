from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from alphascan.schemas import ChainInfo, MarketInfo, TokenMeta

USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
BONK = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
RAY = "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R"
WIF = "EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm"

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def tweet(id, text, likes=0, retweets=0, lang="en"):
    return SimpleNamespace(
        id=id,
        text=text,
        created_at=NOW,
        lang=lang,
        public_metrics={"like_count": likes, "retweet_count": retweets},
    )


class FakeTwitter:
    """Stands in for tweepy's AsyncClient."""

    def __init__(self, timelines=None, failing=(), unknown=()):
        self.timelines = timelines or {}
        self.failing = set(failing)
        self.unknown = set(unknown)
        self.user_lookups = []
        self.tweet_calls = []
        self.search_result = SimpleNamespace(data=[], includes={})

    async def get_user(self, username):
        self.user_lookups.append(username)
        if username in self.unknown:
            return SimpleNamespace(data=None)
        return SimpleNamespace(data=SimpleNamespace(id=f"id-{username}"))

    async def get_users_tweets(self, user_id, **params):
        username = user_id[3:]
        self.tweet_calls.append((username, params))
        if username in self.failing:
            raise RuntimeError("429 Too Many Requests")
        return SimpleNamespace(data=self.timelines.get(username, []))

    async def search_recent_tweets(self, query, **params):
        self.search_query = query
        return self.search_result


def chain_info(address=USDC, age=timedelta(hours=2), signatures=500, **kw):
    return ChainInfo(
        address=address,
        owner="TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",
        lamports=1_461_600,
        deployed_at=NOW - age,
        total_signatures=signatures,
        **kw,
    )


class FakeInspector:
    def __init__(self, infos):
        self.infos = infos
        self.calls = []

    async def inspect(self, address):
        self.calls.append(address)
        return self.infos.get(address)


class FakeEnricher:
    def __init__(self, markets=None):
        self.markets = markets or {}

    async def market_data(self, address):
        return self.markets.get(address)

    async def token_metadata(self, address):
        return TokenMeta(symbol=f"T{address[:3]}", name=f"Token {address[:3]}")


@pytest.fixture
def market():
    return MarketInfo(
        price=0.0123,
        volume24h=150_000,
        market_cap=2_000_000,
        liquidity=60_000,
        price_change24h=12.5,
        dex_url="https://dexscreener.com/solana/pair",
        verified=True,
    )
