"""
Token balance classification, ordering and display formatting.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .wallet import TokenBalance

STABLECOINS = frozenset({"USDC", "USDT", "DAI", "BUSD", "FRAX", "TUSD", "USDP", "USDX"})

# (symbol, chains) pairs
TOP_TOKENS: tuple[tuple[str, frozenset[str]], ...] = (
    ("ETH", frozenset({"eth", "ethereum", "base"})),
    ("USDC", frozenset({"base"})),
    ("BTC", frozenset({"btc", "bitcoin"})),
    ("FIL", frozenset({"filecoin", "fil"})),
)

NATIVE_TOKENS: tuple[tuple[str, frozenset[str]], ...] = (
    ("ETH", frozenset({"eth", "ethereum"})),
    ("MATIC", frozenset({"polygon"})),
    ("AVAX", frozenset({"avalanche"})),
    ("BNB", frozenset({"bsc"})),
    ("BTC", frozenset({"btc", "bitcoin"})),
    ("FIL", frozenset({"filecoin", "fil"})),
)

# Display priority for top tokens; chain matches exactly or as a substring
TOP_TOKEN_ORDER: tuple[tuple[str, str], ...] = (
    ("ETH", "eth"),
    ("ETH", "ethereum"),
    ("ETH", "base"),
    ("USDC", "base"),
    ("BTC", "btc"),
    ("BTC", "bitcoin"),
    ("FIL", "filecoin"),
    ("FIL", "fil"),
)
UNRANKED = 999

BALANCE_FRACTION_DIGITS = 6


def _matches(balance: TokenBalance, table: tuple[tuple[str, frozenset[str]], ...]) -> bool:
    symbol = balance.token_symbol.upper()
    chain = balance.blockchain.lower()
    return any(symbol == s and chain in chains for s, chains in table)


def is_top_token(balance: TokenBalance) -> bool:
    """ETH on Ethereum or Base, USDC on Base, BTC and FIL on their own chains."""
    return _matches(balance, TOP_TOKENS)


def is_stablecoin(balance: TokenBalance) -> bool:
    return balance.token_symbol.upper() in STABLECOINS


def is_native_token(balance: TokenBalance) -> bool:
    """True for the currency a chain charges gas in."""
    return _matches(balance, NATIVE_TOKENS)


def top_token_priority(balance: TokenBalance) -> int:
    symbol = balance.token_symbol.upper()
    chain = balance.blockchain.lower()
    for index, (s, c) in enumerate(TOP_TOKEN_ORDER):
        if s == symbol and c in chain:
            return index
    return UNRANKED


def sort_top_tokens(balances: Iterable[TokenBalance]) -> list[TokenBalance]:
    """Stable sort by top-token priority; everything else keeps its order at the end."""
    return sorted(balances, key=top_token_priority)


def format_balance(balance: str) -> str:
    """
    Human-readable balance with thousands separators.

    At most six fractional digits are kept and trailing zeros dropped.
    Anything that does not parse as a finite number renders as "0".

    Examples:
        "1234.567890123" -> "1,234.56789"
        "0.000001" -> "0.000001"
    """
    try:
        value = float(balance)
    except (TypeError, ValueError):
        return "0"
    if not math.isfinite(value):
        return "0"

    text = f"{value:,.{BALANCE_FRACTION_DIGITS}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def format_timestamp(timestamp: int) -> str:
    """Unix seconds as e.g. "Dec 20, 2021, 11:33 AM" (UTC)."""
    moment = datetime.fromtimestamp(timestamp, timezone.utc)
    return f"{moment:%b} {moment.day}, {moment.year}, {moment:%I:%M %p}"
