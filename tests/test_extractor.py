from alphascan.services.extractor import extract_addresses, is_valid_address

from conftest import BONK, USDC, USDT


def test_extracts_address_from_prose():
    text = f"New gem just launched 🚀 CA: {USDC} get in early"
    assert extract_addresses(text) == [USDC]


def test_multiple_addresses_keep_first_seen_order_and_dedupe():
    text = f"{BONK} vs {USDT}... again {BONK}"
    assert extract_addresses(text) == [BONK, USDT]


def test_rejects_strings_that_do_not_decode_to_a_pubkey():
    too_big = "z" * 44
    too_small = "2" * 32
    assert not is_valid_address(too_big)
    assert not is_valid_address(too_small)
    assert extract_addresses(f"{too_big} {too_small} {USDC}") == [USDC]


def test_excludes_system_and_program_addresses():
    text = (
        "11111111111111111111111111111111 "
        "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA "
        "So11111111111111111111111111111111111111112"
    )
    assert extract_addresses(text) == []


def test_text_without_address_yields_nothing():
    assert extract_addresses("gm, solana is pumping today, $SOL to the moon") == []
    assert extract_addresses("") == []


def test_ambiguous_base58_characters_break_the_match():
    # 'O' and 'l' are not in the base58 alphabet
    assert extract_addresses("EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDtOl") == []
