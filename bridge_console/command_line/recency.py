from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, Protocol, TypeVar

from pydantic import ValidationError

from .config import settings
from .logging_utils import setup_engine_logger
from .models import BridgeMode, RecentToken

logger = setup_engine_logger("recency")

T = TypeVar("T")

COMMANDS_CACHE_COUNT = 10
SOURCE_CHAIN_CACHE_COUNT = 10
TARGET_CHAIN_CACHE_COUNT = 10
TOKEN_CACHE_COUNT = 5

_COMMAND_KEYS = {BridgeMode.TOKEN: "recentlyUsedTokenCommand", BridgeMode.NFT: "recentlyUsedNFTCommand"}
_TOKEN_KEYS = {BridgeMode.TOKEN: "recentlyUsedToken", BridgeMode.NFT: "recentlyUsedNFT"}
SOURCE_CHAIN_KEY = "recentlyUsedSourceChain"
TARGET_CHAIN_KEY = "recentlyUsedTargetChain"


class KeyValueStore(Protocol):
    """Minimal persistence port for the recency lists."""

    def get(self, key: str) -> List[Any]:
        ...

    def set(self, key: str, values: List[Any]) -> None:
        ...


class InMemoryStore:
    def __init__(self, initial: Optional[Dict[str, List[Any]]] = None):
        self._data: Dict[str, List[Any]] = {k: list(v) for k, v in (initial or {}).items()}

    def get(self, key: str) -> List[Any]:
        return list(self._data.get(key, []))

    def set(self, key: str, values: List[Any]) -> None:
        self._data[key] = list(values)


class JsonFileStore:
    """All lists in one JSON document, rewritten wholesale on every write."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"⚠️ Unreadable recency store {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> List[Any]:
        values = self._load().get(key)
        return list(values) if isinstance(values, list) else []

    def set(self, key: str, values: List[Any]) -> None:
        data = self._load()
        data[key] = list(values)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")


class RecencyList(Generic[T]):
    """Most-recent-first, deduplicated, bounded list kept in a KeyValueStore."""

    def __init__(self,
                 store: KeyValueStore,
                 key: str,
                 capacity: int,
                 identity: Callable[[T], Any] = lambda value: value,
                 decode: Callable[[Any], T] = lambda raw: raw,
                 encode: Callable[[T], Any] = lambda value: value):
        self.store = store
        self.key = key
        self.capacity = capacity
        self.identity = identity
        self.decode = decode
        self.encode = encode

    def items(self) -> List[T]:
        values = []
        for raw in self.store.get(self.key):
            try:
                values.append(self.decode(raw))
            except (TypeError, ValueError, ValidationError):
                logger.debug(f"Dropping malformed entry in {self.key}: {raw!r}")
        return values

    def push(self, value: T) -> List[T]:
        merged = [value] + self.items()
        seen = set()
        unique = []
        for item in merged:
            ident = self.identity(item)
            if ident in seen:
                continue
            seen.add(ident)
            unique.append(item)
        unique = unique[:self.capacity]
        self.store.set(self.key, [self.encode(item) for item in unique])
        return unique


def _decode_command(raw: Any) -> str:
    if not isinstance(raw, str):
        raise TypeError(f"command must be a string, got {type(raw).__name__}")
    return raw


def _decode_chain_id(raw: Any) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise TypeError(f"chain id must be an integer, got {raw!r}")
    return raw


def _decode_token(raw: Any) -> RecentToken:
    if not isinstance(raw, dict):
        raise TypeError(f"token must be an object, got {raw!r}")
    return RecentToken(
        symbol=raw.get("symbol"),
        contract_address=raw.get("contractAddress"),
        token_id=raw.get("tokenId"),
    )


def _encode_token(token: RecentToken) -> Dict[str, Any]:
    data = {"symbol": token.symbol, "contractAddress": token.contract_address, "tokenId": token.token_id}
    return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class RecentSnapshot:
    """Read-only view of the recency lists for one bridge mode."""
    commands: List[str] = field(default_factory=list)
    source_chains: List[int] = field(default_factory=list)
    target_chains: List[int] = field(default_factory=list)
    tokens: List[RecentToken] = field(default_factory=list)


class RecencyCache:
    def __init__(self, store: KeyValueStore):
        self.store = store
        self.source_chains: RecencyList[int] = RecencyList(
            store, SOURCE_CHAIN_KEY, SOURCE_CHAIN_CACHE_COUNT, decode=_decode_chain_id)
        self.target_chains: RecencyList[int] = RecencyList(
            store, TARGET_CHAIN_KEY, TARGET_CHAIN_CACHE_COUNT, decode=_decode_chain_id)

    def commands(self, mode: BridgeMode) -> RecencyList[str]:
        return RecencyList(self.store, _COMMAND_KEYS[mode], COMMANDS_CACHE_COUNT, decode=_decode_command)

    def tokens(self, mode: BridgeMode) -> RecencyList[RecentToken]:
        return RecencyList(
            self.store, _TOKEN_KEYS[mode], TOKEN_CACHE_COUNT,
            identity=lambda token: token.identity, decode=_decode_token, encode=_encode_token)

    def record_command(self, command: str, mode: BridgeMode) -> None:
        self.commands(mode).push(command)

    def record_source_chain(self, chain_id: int) -> None:
        self.source_chains.push(chain_id)

    def record_target_chain(self, chain_id: int) -> None:
        self.target_chains.push(chain_id)

    def record_token(self, token: RecentToken, mode: BridgeMode) -> None:
        self.tokens(mode).push(token)

    def snapshot(self, mode: BridgeMode) -> RecentSnapshot:
        return RecentSnapshot(
            commands=self.commands(mode).items(),
            source_chains=self.source_chains.items(),
            target_chains=self.target_chains.items(),
            tokens=self.tokens(mode).items(),
        )


def create_store(path: Optional[str] = None) -> KeyValueStore:
    """JsonFileStore when a path is configured, otherwise an InMemoryStore."""
    if path is None:
        path = settings.recency_store_path
    if path:
        return JsonFileStore(Path(path))
    return InMemoryStore()
