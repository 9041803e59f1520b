from __future__ import annotations

from typing import List, Optional

from .chains import default_catalog
from .models import BridgeMode, ChainCatalog, ChainFamily, ParsedCommand
from .resolver import resolve_exact

FRAGMENT_SPLITTER = ","
CONTRACT_MARKER = "0x"
TOKEN_ID_SEPARATOR = "#"


def _positional(tokens: List[str], count: int) -> List[Optional[str]]:
    return [tokens[i] if i < len(tokens) else None for i in range(count)]


def _split_route(raw: str) -> tuple[List[Optional[str]], Optional[str], Optional[str]]:
    """Split raw text into the five route tokens, the asset clause and the splitter."""
    segments = raw.split(FRAGMENT_SPLITTER)
    route = segments[0].strip()
    asset = segments[1] if len(segments) > 1 else None
    route_tokens = _positional(route.split(" ") if route else [], 5)
    splitter = FRAGMENT_SPLITTER if FRAGMENT_SPLITTER in raw else None
    return route_tokens, asset, splitter


def _classify(symbol_or_address: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    if not symbol_or_address:
        return None, None
    if CONTRACT_MARKER in symbol_or_address:
        return None, symbol_or_address
    return symbol_or_address, None


def parse_token_command(raw: Optional[str]) -> ParsedCommand:
    """`<command> from <source> to <target>, <amount> <symbolOrAddress>`"""
    raw = raw or ""
    (command, from_kw, source, to_kw, target), asset, splitter = _split_route(raw)

    amount, symbol_or_address = None, None
    if asset is not None:
        stripped = asset.strip()
        amount, symbol_or_address = _positional(stripped.split(" ") if stripped else [], 2)
    symbol, contract_address = _classify(symbol_or_address)

    return ParsedCommand(
        unparsed_command=raw,
        command=command,
        from_keyword=from_kw,
        source_chain=source,
        to_keyword=to_kw,
        target_chain=target,
        fragment_splitter=splitter,
        amount=amount,
        symbol=symbol,
        contract_address=contract_address,
    )


def parse_nft_command(raw: Optional[str], catalog: Optional[ChainCatalog] = None) -> ParsedCommand:
    """`<command> from <source> to <target>, <symbolOrAddress>#<tokenId>`

    On the Solana chain the asset is always a mint address and carries no
    token id.
    """
    raw = raw or ""
    catalog = catalog or default_catalog()
    (command, from_kw, source, to_kw, target), asset, splitter = _split_route(raw)

    symbol_or_address, token_id = None, None
    if asset is not None:
        stripped = asset.strip()
        symbol_or_address, token_id = _positional(stripped.split(TOKEN_ID_SEPARATOR) if stripped else [], 2)

    source_match = resolve_exact(source, catalog.chains_for(BridgeMode.NFT))
    on_solana = source_match is not None and source_match.chain.family == ChainFamily.SOLANA

    if on_solana:
        symbol, contract_address = None, symbol_or_address or None
        token_id = None
    else:
        symbol, contract_address = _classify(symbol_or_address)

    return ParsedCommand(
        unparsed_command=raw,
        command=command,
        from_keyword=from_kw,
        source_chain=source,
        to_keyword=to_kw,
        target_chain=target,
        fragment_splitter=splitter,
        symbol=symbol,
        contract_address=contract_address,
        token_id=token_id,
    )


def parse_command(raw: Optional[str], mode: BridgeMode, catalog: Optional[ChainCatalog] = None) -> ParsedCommand:
    if mode == BridgeMode.NFT:
        return parse_nft_command(raw, catalog)
    return parse_token_command(raw)
