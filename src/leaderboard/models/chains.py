"""
Chain identifiers: block explorer links and display names.

Ankr reports chains by short name ("eth", "base"), by long name
("ethereum", "polygon-pos") or by numeric chain ID ("8453"). Lookups are
case-insensitive; an exact key wins, then the first named key contained in
the identifier.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

ETHERSCAN = "https://etherscan.io/tx/"
BASESCAN = "https://basescan.org/tx/"
OPTIMISM_ETHERSCAN = "https://optimistic.etherscan.io/tx/"
ARBISCAN = "https://arbiscan.io/tx/"
POLYGONSCAN = "https://polygonscan.com/tx/"
SNOWTRACE = "https://snowtrace.io/tx/"
BSCSCAN = "https://bscscan.com/tx/"
FILFOX = "https://filfox.info/en/message/"

# Named keys, in partial-match priority order
EXPLORER_PREFIXES: dict[str, str] = {
    "eth": ETHERSCAN,
    "ethereum": ETHERSCAN,
    "base": BASESCAN,
    "optimism": OPTIMISM_ETHERSCAN,
    "arbitrum": ARBISCAN,
    "polygon": POLYGONSCAN,
    "avalanche": SNOWTRACE,
    "avax": SNOWTRACE,
    "bsc": BSCSCAN,
    "binance": BSCSCAN,
    "filecoin": FILFOX,
    "fil": FILFOX,
}

# Numeric chain IDs only match exactly
CHAIN_ID_PREFIXES: dict[str, str] = {
    "1": ETHERSCAN,
    "10": OPTIMISM_ETHERSCAN,
    "56": BSCSCAN,
    "137": POLYGONSCAN,
    "8453": BASESCAN,
    "42161": ARBISCAN,
    "43114": SNOWTRACE,
}

CHAIN_NAMES: dict[str, str] = {
    "eth": "Ethereum",
    "ethereum": "Ethereum",
    "base": "Base",
    "optimism": "Optimism",
    "arbitrum": "Arbitrum",
    "polygon": "Polygon",
    "avalanche": "Avalanche",
    "avax": "Avalanche",
    "bsc": "BNB Smart Chain",
    "binance": "BNB Smart Chain",
    "filecoin": "Filecoin",
    "fil": "Filecoin",
}

_WORD_SEPARATORS = re.compile(r"[-_\s]+")


def _lookup(table: dict[str, str], chain: str) -> str | None:
    key = chain.lower()
    if key in table:
        return table[key]
    return next((value for name, value in table.items() if name in key), None)


def explorer_url(chain: str, tx_hash: str) -> str | None:
    """
    Block explorer link for a transaction.

    Args:
        chain: Chain name or numeric chain ID, any case
        tx_hash: Transaction hash (or Filecoin message CID)

    Returns:
        URL, or None for chains without a known explorer
    """
    prefix = CHAIN_ID_PREFIXES.get(chain.strip()) or _lookup(EXPLORER_PREFIXES, chain)
    return f"{prefix}{tx_hash}" if prefix else None


def explorer_url_for_chains(chains: Iterable[str], tx_hash: str) -> str | None:
    """Explorer link for the first chain that has one."""
    for chain in chains:
        url = explorer_url(chain, tx_hash)
        if url:
            return url
    return None


def format_chain_name(chain: str) -> str:
    """Display name for a chain; unknown identifiers are title-cased word by word."""
    known = _lookup(CHAIN_NAMES, chain)
    if known:
        return known
    return " ".join(word[:1].upper() + word[1:].lower() for word in _WORD_SEPARATORS.split(chain))
