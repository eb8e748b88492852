from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Source(CamelModel):
    username: str
    user_id: Optional[str] = None
    last_tweet_id: Optional[str] = None


class Post(CamelModel):
    id: str
    text: str
    created_at: Optional[datetime] = None
    like_count: int = 0
    retweet_count: int = 0
    lang: Optional[str] = None
    username: str = "unknown"

    @property
    def engagement(self) -> int:
        return self.like_count + self.retweet_count


class Mention(CamelModel):
    address: str
    source: str
    post: Post


class CandidateAddress(CamelModel):
    address: str
    sources: List[str] = Field(default_factory=list)
    posts: List[Post] = Field(default_factory=list)

    @property
    def mention_count(self) -> int:
        return len(self.sources)

    def add(self, mention: Mention) -> None:
        if mention.source not in self.sources:
            self.sources.append(mention.source)
        if all(p.id != mention.post.id for p in self.posts):
            self.posts.append(mention.post)


class HolderBalance(CamelModel):
    address: str
    amount: int


class ChainInfo(CamelModel):
    address: str
    owner: str
    lamports: int
    executable: bool = False
    supply: Optional[int] = None
    decimals: Optional[int] = None
    largest_accounts: List[HolderBalance] = Field(default_factory=list)
    deployed_at: datetime
    total_signatures: int = 0
    holder_risk: int = 50
    age_approximate: bool = False

    @property
    def has_holder_data(self) -> bool:
        return bool(self.supply) and bool(self.largest_accounts)


class MarketInfo(CamelModel):
    price: float = 0.0
    volume24h: float = 0.0
    market_cap: float = 0.0
    liquidity: float = 0.0
    price_change24h: float = 0.0
    dex_url: Optional[str] = None
    pair_address: Optional[str] = None
    dex_id: Optional[str] = None
    verified: bool = False


class TokenMeta(CamelModel):
    symbol: str
    name: str
    decimals: int = 9
    supply: Optional[str] = None
    holder: Optional[int] = None
    metadata_synthetic: bool = False


class TweetRef(CamelModel):
    id: str
    text: str
    created_at: Optional[datetime] = None
    like_count: int = 0
    retweet_count: int = 0
    username: str


class DexData(CamelModel):
    price: float
    volume24h: float
    liquidity: float
    price_change24h: float
    dex_url: Optional[str] = None


class ScoredContract(CamelModel):
    address: str
    symbol: str
    name: str
    deployed_at: datetime
    age_approximate: bool = False
    mentioned_by: List[str]
    tweets: List[TweetRef] = Field(default_factory=list)
    risk_score: int
    liquidity_score: int
    social_score: int
    tags: List[str] = Field(default_factory=list)
    verified: bool = False
    market_cap: Optional[float] = None
    holders: Optional[int] = None
    metadata_synthetic: bool = False
    description: str = ""
    dex_data: Optional[DexData] = None

    @property
    def rank_key(self) -> float:
        return len(self.mentioned_by) * 10 + (100 - self.risk_score) + self.social_score / 10


class ScanStats(CamelModel):
    low_risk: int = 0
    trending: int = 0
    fresh: int = 0


class UpdateStats(ScanStats):
    total: int = 0
    hunters_scanned: int = 0
    total_tweets: int = 0


class ScanMeta(CamelModel):
    total: int
    last_update: Optional[datetime] = None
    scan_in_progress: bool
    stats: ScanStats


class ScanResponse(CamelModel):
    success: bool = True
    data: List[ScoredContract]
    meta: ScanMeta


class StatusData(CamelModel):
    scan_in_progress: bool
    last_scan_time: Optional[datetime] = None
    cached_contracts: int
    connected_clients: int
    monitored_hunters: int


class HunterInfo(CamelModel):
    username: str
    url: str
    last_tweet_id: Optional[str] = None


class ContractStats(CamelModel):
    total_mentions: int
    total_engagement: int
    unique_users: int


class ContractDetail(CamelModel):
    chain: ChainInfo
    cached: Optional[ScoredContract] = None
    dex_data: Optional[MarketInfo] = None
    token: TokenMeta


class ContractDetailData(CamelModel):
    contract: ContractDetail
    tweets: List[Post]
    stats: ContractStats
