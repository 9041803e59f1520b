from __future__ import annotations

from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BridgeMode(str, Enum):
    TOKEN = "token"
    NFT = "nft"


class ChainFamily(str, Enum):
    EVM = "evm"
    SOLANA = "solana"
    OTHER = "other"


class ChainAliasEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    chain_id: int
    name: str
    family: ChainFamily = ChainFamily.OTHER
    aliases: List[str] = Field(..., min_length=1)

    @field_validator("aliases")
    @classmethod
    def _unique_aliases(cls, aliases: List[str]) -> List[str]:
        seen = set()
        for alias in aliases:
            key = alias.strip().lower()
            if not key or " " in key or "," in key:
                raise ValueError(f"invalid alias: {alias!r}")
            if key in seen:
                raise ValueError(f"duplicate alias: {alias!r}")
            seen.add(key)
        return aliases

    @property
    def short_alias(self) -> str:
        """Canonical spelling used in suggestions (shortest alias, first on ties)."""
        return min(self.aliases, key=len)

    @property
    def aliases_by_length(self) -> List[str]:
        return sorted(self.aliases, key=len)


class ChainCatalog(BaseModel):
    model_config = ConfigDict(frozen=True)

    entries: List[ChainAliasEntry] = Field(default_factory=list)
    token_bridge: List[int] = Field(default_factory=list)
    nft_bridge: List[int] = Field(default_factory=list)

    def chains_for(self, mode: BridgeMode) -> List[ChainAliasEntry]:
        """Entries of the mode's allow-list, in catalog order."""
        allowed = set(self.nft_bridge if mode == BridgeMode.NFT else self.token_bridge)
        return [entry for entry in self.entries if entry.chain_id in allowed]

    def get(self, chain_id: Optional[int]) -> Optional[ChainAliasEntry]:
        for entry in self.entries:
            if entry.chain_id == chain_id:
                return entry
        return None


class ParsedCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    unparsed_command: str = ""
    command: Optional[str] = None
    from_keyword: Optional[str] = None
    source_chain: Optional[str] = None
    to_keyword: Optional[str] = None
    target_chain: Optional[str] = None
    fragment_splitter: Optional[str] = None
    symbol: Optional[str] = None
    amount: Optional[str] = None
    contract_address: Optional[str] = None
    token_id: Optional[str] = None

    @property
    def asset(self) -> Optional[str]:
        return self.contract_address or self.symbol


class RecentToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: Optional[str] = None
    contract_address: Optional[str] = None
    token_id: Optional[str] = None

    @property
    def identity(self) -> tuple:
        return (self.symbol, self.contract_address, self.token_id)


class WalletState(str, Enum):
    CONNECTED = "connected"
    CONNECTING = "connecting"
    DISCONNECTED = "disconnected"


WALLET_ERROR_INCORRECT_CHAIN = "incorrect_chain"
WALLET_ERROR_INCORRECT_WALLET = "incorrect_wallet"


class WalletSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: WalletState = WalletState.DISCONNECTED
    address: Optional[str] = None
    expected_chain_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self.error is None and self.state == WalletState.CONNECTED and bool(self.address)


class TokenBalance(BaseModel):
    model_config = ConfigDict(frozen=True)

    contract_address: str
    symbol: Optional[str] = None
    name: Optional[str] = None
    token_id: Optional[str] = None
    ui_amount: Union[float, str, None] = None
    is_native_asset: bool = False

    @property
    def has_balance(self) -> bool:
        try:
            return float(self.ui_amount or 0) != 0
        except (TypeError, ValueError):
            return False


class TokenSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    tokens: List[TokenBalance] = Field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None


def merge_snapshots(cached: TokenSnapshot, remote: Optional[TokenSnapshot] = None) -> TokenSnapshot:
    """Merge the cached wallet snapshot with the remote one.

    Helper for the host: it builds the single `tokens` snapshot that
    CommandSession and the suggestion engine read.

    Remote tokens are appended only when their (address, token id) pair is not
    already known from the cached source.
    """
    if remote is None:
        return cached
    known = {(t.contract_address.lower(), t.token_id) for t in cached.tokens}
    tokens = list(cached.tokens)
    for token in remote.tokens:
        key = (token.contract_address.lower(), token.token_id)
        if key not in known:
            known.add(key)
            tokens.append(token)
    return TokenSnapshot(
        tokens=tokens,
        loading=cached.loading or remote.loading,
        error=cached.error or remote.error,
    )


class BridgeIntent(BaseModel):
    model_config = ConfigDict(frozen=True)

    mode: BridgeMode
    command: str
    source_chain_id: int
    target_chain_id: int
    amount: Optional[str] = None
    symbol: Optional[str] = None
    contract_address: Optional[str] = None
    token_id: Optional[str] = None
