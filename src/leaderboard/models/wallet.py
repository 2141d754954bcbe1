"""
Pydantic models for wallet data.

Describe the snapshot assembled from the Ankr multichain API and stored by
the cache as an opaque payload. Field names follow the upstream camelCase
wire format on input and output; Python code uses snake_case attributes.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .chains import explorer_url_for_chains, format_chain_name
from .tokens import format_balance, is_top_token, sort_top_tokens

TransactionStatus = Literal["success", "failed"]


class WalletModel(BaseModel):
    """
    Base model for wallet data.

    Configuration:
    - frozen: Snapshots are never mutated after assembly
    - extra="ignore": Upstream adds fields freely
    - camelCase aliases: Round-trips the upstream wire format
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict using camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class TokenBalance(WalletModel):
    """Fungible or native token balance on one chain."""

    blockchain: str
    token_name: str = ""
    token_symbol: str = ""
    token_decimals: int = 0
    token_type: str = ""
    contract_address: str | None = None
    holder_address: str = ""
    balance: str = "0"
    balance_raw_integer: str = "0"
    balance_usd: str | None = None
    token_price: str | None = None

    @property
    def formatted_balance(self) -> str:
        return format_balance(self.balance)

    @property
    def chain_name(self) -> str:
        return format_chain_name(self.blockchain)


class NFTAttribute(WalletModel):
    trait_type: str | None = None
    value: str | int | float | None = None


class NFT(WalletModel):
    """Collectible owned by a wallet. POAPs use the same shape."""

    blockchain: str | list[str]
    name: str = ""
    token_id: str = ""
    token_url: str | None = None
    image_url: str | None = None
    collection_name: str = ""
    contract_address: str | None = None
    contract_type: str | None = None
    symbol: str | None = None
    marketplace: str | None = None
    attributes: list[NFTAttribute] = Field(default_factory=list)

    @property
    def chains(self) -> list[str]:
        return [self.blockchain] if isinstance(self.blockchain, str) else list(self.blockchain)

    @property
    def is_poap(self) -> bool:
        """POAPs are flagged by marketplace, collection name or chain."""
        if self.marketplace and "poap" in self.marketplace.lower():
            return True
        if self.collection_name and "poap" in self.collection_name.lower():
            return True
        return any("poap" in chain.lower() for chain in self.chains)


class Transaction(WalletModel):
    """Most recent on-chain transaction, normalized."""

    hash: str = ""
    blockchain: list[str] = Field(default_factory=list)
    from_address: str = Field(default="", alias="from")
    to: str = ""
    value: str = "0"
    timestamp: int = 0
    status: TransactionStatus = "success"
    token_symbol: str | None = None
    token_name: str | None = None
    contract_address: str | None = None

    @property
    def explorer_url(self) -> str | None:
        """Explorer link on the first chain that has one."""
        if not self.hash:
            return None
        return explorer_url_for_chains(self.blockchain, self.hash)


class WalletData(WalletModel):
    """Everything the leaderboard shows for one wallet."""

    balances: list[TokenBalance] = Field(default_factory=list)
    nfts: list[NFT] = Field(default_factory=list)
    poaps: list[NFT] = Field(default_factory=list)
    last_transaction: Transaction | None = None

    @classmethod
    def empty(cls) -> WalletData:
        return cls()

    @property
    def top_tokens(self) -> list[TokenBalance]:
        """Headline balances in display order."""
        return sort_top_tokens(b for b in self.balances if is_top_token(b))

    @property
    def other_tokens(self) -> list[TokenBalance]:
        return [b for b in self.balances if not is_top_token(b)]
