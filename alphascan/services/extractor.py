from __future__ import annotations

import re
from typing import List

from solders.pubkey import Pubkey

# base58 alphabet without 0, O, I, l
SOLANA_ADDRESS_RE = re.compile(r"\b[1-9A-HJ-NP-Za-km-z]{32,44}\b")

SYSTEM_RUN = "1" * 30

KNOWN_PROGRAMS = {
    "11111111111111111111111111111111",               # System Program
    "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA",    # SPL Token
    "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb",    # Token-2022
    "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL",   # Associated Token Account
    "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s",    # Metaplex Token Metadata
    "ComputeBudget111111111111111111111111111111",
    "SysvarRent111111111111111111111111111111111",
    "SysvarC1ock11111111111111111111111111111111",
    "Vote111111111111111111111111111111111111111",
    "Stake11111111111111111111111111111111111111",
    "MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr",
}


def is_valid_address(candidate: str) -> bool:
    """True if ``candidate`` decodes to a 32-byte Solana public key."""
    if not 32 <= len(candidate) <= 44:
        return False
    try:
        Pubkey.from_string(candidate)
    except Exception:
        return False
    return True


def is_excluded(address: str) -> bool:
    return address in KNOWN_PROGRAMS or SYSTEM_RUN in address


def extract_addresses(text: str) -> List[str]:
    """Return the distinct candidate addresses in ``text``, in order of first appearance."""
    if not text:
        return []
    out: List[str] = []
    for match in SOLANA_ADDRESS_RE.findall(text):
        if match in out or is_excluded(match):
            continue
        if is_valid_address(match):
            out.append(match)
    return out
