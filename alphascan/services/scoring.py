from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from alphascan.schemas import (
    CandidateAddress,
    ChainInfo,
    DexData,
    MarketInfo,
    Post,
    ScanStats,
    ScoredContract,
    TokenMeta,
    TweetRef,
)

BASE_RISK = 50
HOUR = 60
DAY = 24 * HOUR
WEEK = 7 * DAY

LOW_RISK_BELOW = 30
HIGH_RISK_ABOVE = 70
HOLDER_RISK_WEIGHT = 0.3


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def age_minutes(deployed_at: datetime, now: datetime) -> float:
    return (now - deployed_at).total_seconds() / 60


def total_engagement(posts: Iterable[Post]) -> int:
    return sum(p.engagement for p in posts)


def calculate_risk_score(
    chain: ChainInfo,
    posts: Sequence[Post],
    mention_count: int,
    market: Optional[MarketInfo],
    now: datetime,
) -> int:
    """Heuristic 0..100 risk score; higher means riskier."""
    score: float = BASE_RISK

    age = age_minutes(chain.deployed_at, now)
    if age < 30:
        score += 40
    elif age < HOUR:
        score += 25
    elif age < DAY:
        score += 10
    elif age > WEEK:
        score -= 15

    if mention_count > 5:
        score -= 25
    elif mention_count > 2:
        score -= 15
    elif mention_count == 1:
        score += 20

    engagement = total_engagement(posts)
    if engagement > 500:
        score -= 20
    elif engagement > 100:
        score -= 10
    elif engagement < 10:
        score += 15

    if market is not None:
        if market.liquidity > 50_000:
            score -= 20
        elif market.liquidity > 10_000:
            score -= 10
        elif market.liquidity < 1_000:
            score += 25

        if market.volume24h > 100_000:
            score -= 15
        elif market.volume24h < 1_000:
            score += 10

        if market.verified:
            score -= 15
    else:
        score += 20

    if chain.has_holder_data:
        score += chain.holder_risk * HOLDER_RISK_WEIGHT

    if chain.total_signatures > 1000:
        score -= 10
    elif chain.total_signatures < 10:
        score += 15

    return int(clamp(round_half_up(score), 0, 100))


def generate_tags(
    risk_score: int,
    age: float,
    sources: Sequence[str],
    market: Optional[MarketInfo],
    top_hunters: Iterable[str] = (),
) -> List[str]:
    tags = []

    if risk_score < LOW_RISK_BELOW:
        tags.append("LOW_RISK")
    elif risk_score > HIGH_RISK_ABOVE:
        tags.append("HIGH_RISK")

    if age < 30:
        tags.append("ULTRA_FRESH")
    elif age < HOUR:
        tags.append("FRESH")
    elif age < DAY:
        tags.append("NEW")

    if len(sources) > 4:
        tags.append("TRENDING")
    elif len(sources) > 2:
        tags.append("POPULAR")

    top = set(top_hunters)
    if any(s in top for s in sources):
        tags.append("ALPHA_HUNTER")

    if market is not None:
        if market.volume24h > 100_000:
            tags.append("HIGH_VOLUME")
        if market.liquidity > 50_000:
            tags.append("GOOD_LIQUIDITY")
        if market.price_change24h > 50:
            tags.append("PUMPING")
        elif market.price_change24h < -20:
            tags.append("DUMPING")
        if market.verified:
            tags.append("VERIFIED")
    else:
        tags.append("NO_DEX_DATA")

    return tags


def social_score(mention_count: int, posts: Iterable[Post]) -> int:
    likes = sum(p.like_count for p in posts)
    return round_half_up(min(100, mention_count * 12 + likes / 15))


def liquidity_score(market: Optional[MarketInfo], risk_score: int) -> int:
    if market is not None:
        return round_half_up(clamp(market.liquidity / 1000, 10, 100))
    return round_half_up(max(20, 100 - risk_score))


def describe(meta: TokenMeta, sources: Sequence[str], market: Optional[MarketInfo]) -> str:
    if market is not None:
        trading = f"${market.price:.6f} | Vol: ${market.volume24h:,.0f}"
    else:
        trading = "No trading data"
    return f"{meta.name} mentioned by {', '.join(sources)}. {trading}"


def score_contract(
    candidate: CandidateAddress,
    chain: ChainInfo,
    market: Optional[MarketInfo],
    meta: TokenMeta,
    now: datetime,
    top_hunters: Iterable[str] = (),
) -> ScoredContract:
    """Assemble the published record for one address. Deterministic for fixed ``now``."""
    sources = list(candidate.sources)
    posts = list(candidate.posts)
    risk = calculate_risk_score(chain, posts, len(sources), market, now)
    age = age_minutes(chain.deployed_at, now)

    dex = None
    if market is not None:
        dex = DexData(
            price=market.price,
            volume24h=market.volume24h,
            liquidity=market.liquidity,
            price_change24h=market.price_change24h,
            dex_url=market.dex_url,
        )

    return ScoredContract(
        address=candidate.address,
        symbol=meta.symbol,
        name=meta.name,
        deployed_at=chain.deployed_at,
        age_approximate=chain.age_approximate,
        mentioned_by=sources,
        tweets=[
            TweetRef(
                id=p.id,
                text=p.text,
                created_at=p.created_at,
                like_count=p.like_count,
                retweet_count=p.retweet_count,
                username=p.username,
            )
            for p in posts
        ],
        risk_score=risk,
        liquidity_score=liquidity_score(market, risk),
        social_score=social_score(len(sources), posts),
        tags=generate_tags(risk, age, sources, market, top_hunters),
        verified=market.verified if market is not None else False,
        market_cap=market.market_cap if market is not None else None,
        holders=meta.holder,
        metadata_synthetic=meta.metadata_synthetic,
        description=describe(meta, sources, market),
        dex_data=dex,
    )


def rank(contracts: Iterable[ScoredContract]) -> List[ScoredContract]:
    # sorted() is stable, so equal keys keep discovery order
    return sorted(contracts, key=lambda c: c.rank_key, reverse=True)


def summarize(contracts: Sequence[ScoredContract]) -> ScanStats:
    return ScanStats(
        low_risk=sum(1 for c in contracts if c.risk_score < LOW_RISK_BELOW),
        trending=sum(1 for c in contracts if "TRENDING" in c.tags),
        fresh=sum(1 for c in contracts if "FRESH" in c.tags or "ULTRA_FRESH" in c.tags),
    )
