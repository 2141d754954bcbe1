"""
Leaderboard Models

Data structures for upstream payloads, plus chain and token display helpers.
"""

from leaderboard.models.chains import (
    explorer_url,
    explorer_url_for_chains,
    format_chain_name,
)
from leaderboard.models.tokens import (
    format_balance,
    format_timestamp,
    is_native_token,
    is_stablecoin,
    is_top_token,
    sort_top_tokens,
)
from leaderboard.models.wallet import (
    NFT,
    NFTAttribute,
    TokenBalance,
    Transaction,
    TransactionStatus,
    WalletData,
    WalletModel,
)

__all__ = [
    "NFT",
    "NFTAttribute",
    "TokenBalance",
    "Transaction",
    "TransactionStatus",
    "WalletData",
    "WalletModel",
    # Chains
    "explorer_url",
    "explorer_url_for_chains",
    "format_chain_name",
    # Tokens
    "format_balance",
    "format_timestamp",
    "is_native_token",
    "is_stablecoin",
    "is_top_token",
    "sort_top_tokens",
]
