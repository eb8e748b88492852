from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solders.pubkey import Pubkey

from alphascan.schemas import ChainInfo, HolderBalance

log = logging.getLogger(__name__)

TOP_HOLDERS = 5

# (ratio above, risk)
CONCENTRATION_BANDS = [
    (80, 90),
    (60, 70),
    (40, 50),
    (20, 30),
]


def build_client(rpc_url: str, timeout: float = 10.0) -> AsyncClient:
    return AsyncClient(rpc_url, commitment=Confirmed, timeout=timeout)


def calculate_holder_risk(largest: List[HolderBalance], supply: Optional[int]) -> int:
    """Map the top-5 holders' share of supply onto a 10..90 risk band (50 if unknown)."""
    if not largest or not supply:
        return 50
    top = sum(h.amount for h in largest[:TOP_HOLDERS])
    ratio = top / supply * 100
    for threshold, risk in CONCENTRATION_BANDS:
        if ratio > threshold:
            return risk
    return 10


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ChainInspector:
    def __init__(self, client: AsyncClient, signature_limit: int = 1000):
        self.client = client
        self.signature_limit = signature_limit

    async def _token_data(self, pubkey: Pubkey):
        supply, decimals, largest = None, None, []
        try:
            supply_resp = await self.client.get_token_supply(pubkey)
            supply = int(supply_resp.value.amount)
            decimals = supply_resp.value.decimals
            largest_resp = await self.client.get_token_largest_accounts(pubkey)
            largest = [
                HolderBalance(address=str(acc.address), amount=int(acc.amount.amount))
                for acc in largest_resp.value
            ]
        except Exception:
            # not a mint
            pass
        return supply, decimals, largest

    async def inspect(self, address: str) -> Optional[ChainInfo]:
        """On-chain snapshot for ``address``, or None if there is no account."""
        try:
            pubkey = Pubkey.from_string(address)
            account_resp = await self.client.get_account_info(pubkey)
            account = account_resp.value
            if account is None:
                return None

            supply, decimals, largest = await self._token_data(pubkey)

            sig_resp = await self.client.get_signatures_for_address(pubkey, limit=self.signature_limit)
            signatures = list(sig_resp.value or [])
        except Exception as e:
            log.error("Error getting contract info for %s: %s", address, e)
            return None

        # oldest signature that carries a block time
        block_time = next((s.block_time for s in reversed(signatures) if s.block_time), None)
        if block_time:
            deployed_at = datetime.fromtimestamp(block_time, tz=timezone.utc)
        else:
            deployed_at = _now()

        return ChainInfo(
            address=address,
            owner=str(account.owner),
            lamports=account.lamports,
            executable=bool(account.executable),
            supply=supply,
            decimals=decimals,
            largest_accounts=largest,
            deployed_at=deployed_at,
            total_signatures=len(signatures),
            holder_risk=calculate_holder_risk(largest, supply),
            age_approximate=(
                not block_time
                or not signatures[-1].block_time
                or len(signatures) >= self.signature_limit
            ),
        )
