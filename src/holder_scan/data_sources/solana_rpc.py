"""
Solana RPC client for the Holder Scan agent.

Speaks the standard JSON-RPC interface plus the Helius DAS extensions
(``getTokenAccounts``, ``getAssetsByOwner``, ``getAsset``).  Every call is
admitted by the shared :class:`~holder_scan.rate_limiter.RequestScheduler`:
standard methods draw from the BULK pool, DAS methods from the API pool.

Results are shape-checked here so callers get either well-formed data or a
``MalformedResponseError``; upstream failures surface as the typed errors
raised by ``_retry.async_http_post_json``.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Optional

import httpx

from ._retry import async_http_post_json
from ..constants import TOKEN_PROGRAM
from ..errors import MalformedResponseError
from ..models import TokenAccount, TokenAccountsPage, scale_amount
from ..rate_limiter import Pool, RequestScheduler

logger = logging.getLogger(__name__)

# Helius caps both signature pages and DAS pages at 1000 items
MAX_PAGE_SIZE = 1000

_DAS_METHODS = frozenset({"getTokenAccounts", "getAssetsByOwner", "getAsset"})


class SolanaRpcClient:
    """Async Solana JSON-RPC client routed through a request scheduler."""

    def __init__(
        self,
        endpoint: str,
        scheduler: RequestScheduler,
        timeout: int = 15,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._scheduler = scheduler
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self._id_counter = 0

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Signatures and transactions
    # ------------------------------------------------------------------

    async def get_signatures_for_address(
        self,
        address: str,
        *,
        limit: int = MAX_PAGE_SIZE,
        before: Optional[str] = None,
        until: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Return up to *limit* signatures for *address*, newest first.

        *before* starts the page strictly older than that signature; *until*
        stops the page at (excluding) that signature.
        """
        opts: dict[str, Any] = {"limit": min(limit, MAX_PAGE_SIZE)}
        if before:
            opts["before"] = before
        if until:
            opts["until"] = until
        result = await self._call("getSignaturesForAddress", [address, opts])
        if result is None:
            return []
        if not isinstance(result, list):
            raise MalformedResponseError(
                f"getSignaturesForAddress returned {type(result).__name__}"
            )
        return [sig for sig in result if isinstance(sig, dict) and sig.get("signature")]

    async def get_transaction(self, signature: str) -> Optional[dict[str, Any]]:
        """Fetch a parsed transaction, or ``None`` when the node does not have it."""
        result = await self._call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if result is None:
            return None
        if not isinstance(result, dict):
            raise MalformedResponseError(f"getTransaction returned {type(result).__name__}")
        return result

    # ------------------------------------------------------------------
    # Token accounts
    # ------------------------------------------------------------------

    async def get_token_accounts(
        self,
        mint: str,
        *,
        limit: int = MAX_PAGE_SIZE,
        cursor: Optional[str] = None,
    ) -> TokenAccountsPage:
        """One page of all token accounts of *mint* (Helius DAS, cursor paged)."""
        params: dict[str, Any] = {
            "mint": mint,
            "limit": min(limit, MAX_PAGE_SIZE),
            "options": {"showZeroBalance": False},
        }
        if cursor:
            params["cursor"] = cursor
        result = await self._call("getTokenAccounts", params)
        if not isinstance(result, dict):
            raise MalformedResponseError("getTokenAccounts returned no page object")
        raw_accounts = result.get("token_accounts")
        if not isinstance(raw_accounts, list):
            raise MalformedResponseError("getTokenAccounts page has no token_accounts list")
        accounts: list[TokenAccount] = []
        for item in raw_accounts:
            try:
                accounts.append(
                    TokenAccount(
                        address=item.get("address", ""),
                        owner=item["owner"],
                        amount=int(item.get("amount", 0)),
                    )
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise MalformedResponseError(f"bad token account entry: {item!r}") from exc
        return TokenAccountsPage(accounts=accounts, cursor=result.get("cursor") or None)

    async def get_token_largest_accounts(self, mint: str) -> list[dict[str, Any]]:
        """The 20 largest token accounts of *mint*: ``[{address, amount, decimals}]``."""
        result = await self._call("getTokenLargestAccounts", [mint])
        value = _unwrap_value(result, "getTokenLargestAccounts")
        if not isinstance(value, list):
            raise MalformedResponseError("getTokenLargestAccounts value is not a list")
        return value

    async def get_token_accounts_by_owner(
        self,
        owner: str,
        *,
        mint: Optional[str] = None,
        program_id: str = TOKEN_PROGRAM,
    ) -> list[dict[str, Any]]:
        """Parsed token accounts of *owner*, filtered by *mint* when given."""
        filt = {"mint": mint} if mint else {"programId": program_id}
        result = await self._call(
            "getTokenAccountsByOwner",
            [owner, filt, {"encoding": "jsonParsed"}],
        )
        value = _unwrap_value(result, "getTokenAccountsByOwner")
        if not isinstance(value, list):
            raise MalformedResponseError("getTokenAccountsByOwner value is not a list")
        return value

    async def get_token_balance(self, owner: str, mint: str) -> Decimal:
        """Current balance of *mint* held by *owner*, summed over its token accounts."""
        total = Decimal(0)
        for account in await self.get_token_accounts_by_owner(owner, mint=mint):
            try:
                amount = account["account"]["data"]["parsed"]["info"]["tokenAmount"]
                total += scale_amount(int(amount["amount"]), int(amount["decimals"]))
            except (KeyError, TypeError, ValueError) as exc:
                raise MalformedResponseError(f"bad token account for {owner}") from exc
        return total

    async def get_token_supply(self, mint: str) -> dict[str, Any]:
        """``{amount, decimals, uiAmount}`` for *mint*."""
        result = await self._call("getTokenSupply", [mint])
        value = _unwrap_value(result, "getTokenSupply")
        if not isinstance(value, dict) or "amount" not in value or "decimals" not in value:
            raise MalformedResponseError("getTokenSupply value lacks amount/decimals")
        return value

    # ------------------------------------------------------------------
    # Accounts and balances
    # ------------------------------------------------------------------

    async def get_account_info(self, address: str) -> Optional[dict[str, Any]]:
        """Parsed account info, or ``None`` when the account does not exist."""
        result = await self._call(
            "getAccountInfo",
            [address, {"encoding": "jsonParsed"}],
        )
        value = _unwrap_value(result, "getAccountInfo")
        if value is not None and not isinstance(value, dict):
            raise MalformedResponseError("getAccountInfo value is not an object")
        return value

    async def get_balance(self, address: str) -> int:
        """SOL balance of *address* in lamports."""
        result = await self._call("getBalance", [address])
        value = _unwrap_value(result, "getBalance")
        if not isinstance(value, int):
            raise MalformedResponseError("getBalance value is not an integer")
        return value

    # ------------------------------------------------------------------
    # DAS assets
    # ------------------------------------------------------------------

    async def get_assets_by_owner(
        self,
        owner: str,
        *,
        page: int = 1,
        limit: int = MAX_PAGE_SIZE,
        show_fungible: bool = True,
    ) -> dict[str, Any]:
        """One page of assets owned by *owner*: ``{total, limit, page, items}``."""
        result = await self._call(
            "getAssetsByOwner",
            {
                "ownerAddress": owner,
                "page": page,
                "limit": min(limit, MAX_PAGE_SIZE),
                "displayOptions": {"showFungible": show_fungible},
            },
        )
        if not isinstance(result, dict) or not isinstance(result.get("items"), list):
            raise MalformedResponseError("getAssetsByOwner returned no items list")
        return result

    async def get_asset(self, mint: str) -> dict[str, Any]:
        """Metaplex / DAS asset data for *mint*, ``{}`` when unknown."""
        result = await self._call("getAsset", {"id": mint})
        if isinstance(result, dict):
            return result
        return {}

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _call(self, method: str, params: list[Any] | dict) -> Any:
        """Single JSON-RPC call admitted and retried by the scheduler."""
        pool = Pool.API if method in _DAS_METHODS else Pool.BULK

        async def _do() -> Any:
            self._id_counter += 1
            payload = {
                "jsonrpc": "2.0",
                "id": self._id_counter,
                "method": method,
                "params": params,
            }
            client = await self._get_client()
            return await async_http_post_json(
                client, self._endpoint, json_payload=payload,
                label=f"Solana RPC ({method})",
            )

        return await self._scheduler.schedule(_do, pool, step=method)


def _unwrap_value(result: Any, method: str) -> Any:
    """Strip the ``{context, value}`` envelope most RPC methods return."""
    if not isinstance(result, dict) or "value" not in result:
        raise MalformedResponseError(f"{method} result has no value envelope")
    return result["value"]
