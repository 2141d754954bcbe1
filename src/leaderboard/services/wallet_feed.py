"""
Wallet Data Fetcher.

Assembles a wallet snapshot from the Ankr Advanced API (JSON-RPC 2.0 over
the multichain endpoint):
- ankr_getAccountBalance: token balances across all supported chains
- ankr_getNFTsByOwner: NFTs, split into POAPs and regular collectibles
- ankr_getTransactionsByAddress: most recent transaction

The three calls run concurrently. Each section degrades to empty on its own
failure so one flaky method never blanks the whole snapshot.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from pydantic import ValidationError

from ..core.config import get_settings
from ..core.constants import ANKR_BALANCE_PAGE_SIZE, ANKR_MULTICHAIN_URL, ANKR_NFT_PAGE_SIZE
from ..core.logging import get_logger
from ..core.retry import http_retry
from ..models.wallet import NFT, TokenBalance, Transaction, WalletData
from .errors import WalletFeedError

logger = get_logger(__name__)


def _endpoint(api_key: str) -> str:
    return f"{ANKR_MULTICHAIN_URL}/{api_key}"


@http_retry()
async def _post_rpc(client: httpx.AsyncClient, url: str, body: dict[str, Any]) -> httpx.Response:
    response = await client.post(url, json=body, headers={"Content-Type": "application/json"})
    response.raise_for_status()
    return response


async def _rpc_call(
    client: httpx.AsyncClient,
    api_key: str,
    method: str,
    params: dict[str, Any],
) -> dict[str, Any]:
    """
    Perform one JSON-RPC call and return its ``result`` object.

    Raises:
        WalletFeedError: On HTTP failure or an RPC-level error
    """
    body = {"jsonrpc": "2.0", "method": method, "params": params, "id": 1}
    try:
        response = await _post_rpc(client, _endpoint(api_key), body)
        data = response.json()
    except httpx.HTTPStatusError as e:
        raise WalletFeedError(
            f"{method} failed: {e.response.reason_phrase}",
            status_code=e.response.status_code,
        ) from e
    except (httpx.TransportError, ValueError) as e:
        raise WalletFeedError(f"{method} failed: {e}") from e

    if not isinstance(data, dict):
        raise WalletFeedError(f"{method} failed: invalid response format")

    if data.get("error"):
        error = data["error"]
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise WalletFeedError(f"{method} failed: {message or 'Unknown error'}")

    return data.get("result") or {}


# =============================================================================
# Sections
# =============================================================================


async def get_wallet_balances(
    client: httpx.AsyncClient, address: str, api_key: str
) -> list[TokenBalance]:
    """Token balances across every supported chain. Empty on error."""
    try:
        result = await _rpc_call(
            client,
            api_key,
            "ankr_getAccountBalance",
            {"blockchain": [], "walletAddress": address, "pageSize": ANKR_BALANCE_PAGE_SIZE},
        )
        return [TokenBalance.model_validate(asset) for asset in result.get("assets") or []]
    except (WalletFeedError, ValidationError) as e:
        logger.error("Error fetching wallet balances", extra={"wallet": address, "error": str(e)})
        return []


async def get_wallet_nfts(
    client: httpx.AsyncClient, address: str, api_key: str
) -> tuple[list[NFT], list[NFT]]:
    """
    NFTs owned by the wallet, split into (nfts, poaps). Empty on error.

    Assets that do not parse are skipped individually.
    """
    try:
        result = await _rpc_call(
            client,
            api_key,
            "ankr_getNFTsByOwner",
            {"walletAddress": address, "pageSize": ANKR_NFT_PAGE_SIZE},
        )
    except WalletFeedError as e:
        logger.error("Error fetching wallet NFTs", extra={"wallet": address, "error": str(e)})
        return [], []

    nfts: list[NFT] = []
    poaps: list[NFT] = []
    for asset in result.get("assets") or []:
        try:
            nft = NFT.model_validate(asset)
        except ValidationError as e:
            logger.debug("Skipping unparseable NFT asset", extra={"error": str(e)})
            continue
        (poaps if nft.is_poap else nfts).append(nft)
    return nfts, poaps


async def get_wallet_transactions(
    client: httpx.AsyncClient, address: str, api_key: str, limit: int = 10
) -> list[dict[str, Any]]:
    """Most recent transactions first, as raw upstream dicts. Empty on error."""
    try:
        result = await _rpc_call(
            client,
            api_key,
            "ankr_getTransactionsByAddress",
            {"blockchain": [], "address": address, "pageSize": limit, "descOrder": True},
        )
    except WalletFeedError as e:
        logger.error(
            "Error fetching wallet transactions", extra={"wallet": address, "error": str(e)}
        )
        return []
    return list(result.get("transactions") or [])


# =============================================================================
# Normalization
# =============================================================================


def _parse_int(value: Any) -> int:
    """Accept ints, decimal strings and 0x-prefixed hex strings."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value:
        try:
            return int(value, 16) if value.lower().startswith("0x") else int(value)
        except ValueError:
            return 0
    return 0


def _extract_chains(tx: dict[str, Any]) -> list[str]:
    blockchain = tx.get("blockchain")
    if isinstance(blockchain, list):
        return [str(c) for c in blockchain]
    if isinstance(blockchain, str) and blockchain:
        return [blockchain]
    chain = tx.get("chain")
    if isinstance(chain, str) and chain:
        return [chain]
    chains = tx.get("chains")
    if isinstance(chains, list):
        return [str(c) for c in chains]
    return []


def _extract_token_field(tx: dict[str, Any], top_level: str, nested: str) -> str | None:
    """Look for a token attribute at the top level, then under asset and token."""
    if tx.get(top_level):
        return str(tx[top_level])
    for container in ("asset", "token"):
        inner = tx.get(container)
        if isinstance(inner, dict) and inner.get(nested):
            return str(inner[nested])
    return None


def normalize_transaction(tx: dict[str, Any]) -> Transaction:
    """Map a raw upstream transaction onto the Transaction model."""
    return Transaction(
        hash=str(tx.get("hash") or ""),
        blockchain=_extract_chains(tx),
        from_address=str(tx.get("from") or ""),
        to=str(tx.get("to") or ""),
        value=str(tx.get("value") or "0"),
        timestamp=_parse_int(tx.get("timestamp")),
        status="failed" if tx.get("status") == "failed" else "success",
        token_symbol=_extract_token_field(tx, "tokenSymbol", "symbol"),
        token_name=_extract_token_field(tx, "tokenName", "name"),
        contract_address=_extract_token_field(tx, "contractAddress", "contractAddress"),
    )


# =============================================================================
# Snapshot
# =============================================================================


async def fetch_wallet_data(
    address: str,
    api_key: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> WalletData:
    """
    Fetch balances, NFTs, POAPs and the last transaction concurrently.

    Args:
        address: Wallet address (0x...)
        api_key: Ankr key; defaults to ANKR_API_KEY from settings
        client: Shared client; a short-lived one is created if omitted

    Raises:
        WalletFeedError: If no API key is configured
    """
    settings = get_settings()
    api_key = api_key or settings.ankr_api_key
    if not api_key:
        raise WalletFeedError("ANKR_API_KEY not configured")

    if client is None:
        async with httpx.AsyncClient(timeout=settings.fetch_timeout_seconds) as owned:
            return await fetch_wallet_data(address, api_key, owned)

    balances, (nfts, poaps), transactions = await asyncio.gather(
        get_wallet_balances(client, address, api_key),
        get_wallet_nfts(client, address, api_key),
        get_wallet_transactions(client, address, api_key, limit=1),
    )

    last_transaction = normalize_transaction(transactions[0]) if transactions else None

    logger.debug(
        "Fetched wallet data",
        extra={
            "wallet": address,
            "balances": len(balances),
            "nfts": len(nfts),
            "poaps": len(poaps),
        },
    )
    return WalletData(
        balances=balances,
        nfts=nfts,
        poaps=poaps,
        last_transaction=last_transaction,
    )
