from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from .address import DEFAULT_VALIDATORS, AddressValidators
from .chains import default_catalog
from .logging_utils import setup_engine_logger
from .models import (
    WALLET_ERROR_INCORRECT_CHAIN,
    WALLET_ERROR_INCORRECT_WALLET,
    BridgeMode,
    ChainAliasEntry,
    ChainCatalog,
    ChainFamily,
    ParsedCommand,
    TokenSnapshot,
    WalletSnapshot,
    WalletState,
)
from .parser import parse_command
from .recency import RecentSnapshot
from .resolver import ChainMatch, ChainResolution, rank_chains, resolve_chain
from .validation import (
    BRIDGE_COMMAND,
    FROM_KEYWORD,
    TO_KEYWORD,
    VALID_COMMANDS,
    PartialFlags,
    validate_finalize,
    validate_partial,
)

logger = setup_engine_logger("suggestions")

CHAIN_CANDIDATE_LIMIT = 10
RECENT_COMMAND_LIMIT = 10


class ActionStyle(str, Enum):
    CONTENT = "content"
    TIPS = "tips"
    ERROR = "error"
    GROUP_LABEL = "group_label"


class Emphasis(str, Enum):
    HIGHLIGHT = "highlight"
    BOLD = "bold"


@dataclass(frozen=True)
class Fragment:
    text: str
    emphasis: Optional[Emphasis] = None


@dataclass(frozen=True)
class Action:
    """One row of the suggestion dropdown, optionally grouping child rows."""
    key: str
    display: Tuple[Fragment, ...]
    style: ActionStyle
    value: Optional[str] = None
    on_activate: Optional[Callable[[], None]] = field(default=None, compare=False, repr=False)
    children: Tuple["Action", ...] = ()

    @property
    def text(self) -> str:
        return "".join(fragment.text for fragment in self.display)

    def activate(self) -> None:
        if self.on_activate is not None:
            self.on_activate()


def _ignore_change(_: str) -> None:
    return None


def _ignore_finish() -> None:
    return None


@dataclass(frozen=True)
class SuggestionContext:
    """Everything one recomputation of the suggestion tree depends on."""
    raw_text: str
    mode: BridgeMode = BridgeMode.TOKEN
    catalog: ChainCatalog = field(default_factory=default_catalog)
    execution_error: Optional[str] = None
    processing: bool = False
    source_chain_id: Optional[int] = None
    target_chain_id: Optional[int] = None
    wallet: WalletSnapshot = field(default_factory=WalletSnapshot)
    tokens: TokenSnapshot = field(default_factory=TokenSnapshot)
    recent: RecentSnapshot = field(default_factory=RecentSnapshot)
    validators: AddressValidators = DEFAULT_VALIDATORS
    on_change: Callable[[str], None] = _ignore_change
    on_finish: Callable[[], None] = _ignore_finish


@dataclass(frozen=True)
class _State:
    ctx: SuggestionContext
    parsed: ParsedCommand
    flags: PartialFlags
    source: ChainResolution
    target: ChainResolution

    @property
    def chains(self) -> List[ChainAliasEntry]:
        return self.ctx.catalog.chains_for(self.ctx.mode)

    @property
    def source_chain(self) -> Optional[ChainAliasEntry]:
        return self.source.exact.chain if self.source.exact else None

    @property
    def on_solana(self) -> bool:
        return self.source_chain is not None and self.source_chain.family == ChainFamily.SOLANA

    @property
    def is_nft(self) -> bool:
        return self.ctx.mode == BridgeMode.NFT

    @property
    def target_fuzzy(self) -> List[ChainMatch]:
        source = (self.parsed.source_chain or "").lower()
        return [m for m in self.target.fuzzy if m.matched_alias.lower() != source]

    @property
    def wallet_tokens_visible(self) -> bool:
        return (
            self.source_chain is not None
            and self.ctx.source_chain_id is not None
            and self.source_chain.chain_id == self.ctx.source_chain_id
            and not self.ctx.wallet.error
        )


def _state(ctx: SuggestionContext) -> _State:
    parsed = parse_command(ctx.raw_text, ctx.mode, ctx.catalog)
    chains = ctx.catalog.chains_for(ctx.mode)
    return _State(
        ctx=ctx,
        parsed=parsed,
        flags=validate_partial(parsed, ctx.mode, ctx.catalog, ctx.validators),
        source=resolve_chain(parsed.source_chain, chains),
        target=resolve_chain(parsed.target_chain, chains),
    )


# ---------------------------------------------------------------------------
# Action builders
# ---------------------------------------------------------------------------

def _plain(text: str) -> Fragment:
    return Fragment(text)


def _highlight(text: str) -> Fragment:
    return Fragment(text, Emphasis.HIGHLIGHT)


def _bold(text: str) -> Fragment:
    return Fragment(text, Emphasis.BOLD)


def _route(command: str, source: str, target: Optional[str] = None) -> List[Fragment]:
    parts = [_plain(f"{command} from "), _highlight(source), _plain(" to")]
    if target is not None:
        parts += [_plain(" "), _highlight(target), _plain(",")]
    return parts


def _candidate(ctx: SuggestionContext, value: str, display: Iterable[Fragment], key: Optional[str] = None) -> Action:
    return Action(
        key=key or value,
        display=tuple(display),
        style=ActionStyle.CONTENT,
        value=value,
        on_activate=lambda: ctx.on_change(value),
    )


def _error(display: Iterable[Fragment], ctx: Optional[SuggestionContext] = None, value: Optional[str] = None) -> Action:
    on_activate = (lambda: ctx.on_change(value)) if ctx is not None and value is not None else None
    return Action(key="err", display=tuple(display), style=ActionStyle.ERROR, value=value, on_activate=on_activate)


def _tips(display: Iterable[Fragment], key: str = "tips") -> Action:
    return Action(key=key, display=tuple(display), style=ActionStyle.TIPS)


def _group(key: str, label: str, children: Sequence[Action]) -> List[Action]:
    unique = []
    seen = set()
    for child in children:
        if child.key in seen:
            continue
        seen.add(child.key)
        unique.append(child)
    if not unique:
        return []
    return [Action(key=key, display=(_plain(label),), style=ActionStyle.GROUP_LABEL, children=tuple(unique))]


def _token_ref(asset: Optional[str], token_id: Optional[str]) -> str:
    return f"{asset or ''}{f'#{token_id}' if token_id else ''}"


# ---------------------------------------------------------------------------
# Producers
# ---------------------------------------------------------------------------

def _execution_error(s: _State) -> List[Action]:
    message = s.ctx.execution_error
    return [Action(key=message, display=(_plain(message),), style=ActionStyle.ERROR)]


def _processing(s: _State) -> List[Action]:
    return [_tips([_plain("In progress. Please wait...")], key="loading")]


def _format_hint(s: _State) -> List[Action]:
    asset_hint = "[NFT name]#[NFT Id]" if s.is_nft else "[quantity] [symbol]"
    actions = [_tips([
        _plain("Format: Bridge from "), _highlight("[source]"),
        _plain(" to "), _highlight("[destination]"),
        _plain(", "), _highlight(asset_hint),
    ])]

    children = []
    for index, item in enumerate(s.ctx.recent.commands[:RECENT_COMMAND_LIMIT]):
        parsed = parse_command(item, s.ctx.mode, s.ctx.catalog)
        if not validate_finalize(parsed, s.ctx.mode, s.ctx.catalog, s.ctx.validators).is_valid:
            continue
        if s.is_nft:
            asset = _token_ref(parsed.asset, parsed.token_id)
        else:
            asset = f"{parsed.amount} {parsed.asset}"
        children.append(_candidate(
            s.ctx, item,
            _route(parsed.command, parsed.source_chain, parsed.target_chain) + [_plain(" "), _highlight(asset)],
            key=f"recently-used-command-{index}",
        ))
    return actions + _group("Recently used commands", "Recently used:", children)


def _invalid_command(s: _State) -> List[Action]:
    return [_error([
        _plain("Invalid command "), _bold(s.parsed.command),
        _plain(f", available commands: {','.join(VALID_COMMANDS)}"),
    ])]


def _invalid_from(s: _State) -> List[Action]:
    p = s.parsed
    return [_error(
        [_plain("Invalid command "), _bold(f"{p.command} {p.from_keyword}")],
        s.ctx, f"{p.command} {FROM_KEYWORD}",
    )]


def _complete_command(s: _State) -> List[Action]:
    value = f"{BRIDGE_COMMAND.capitalize()} {FROM_KEYWORD} "
    return [_candidate(s.ctx, value, [_plain(value)])]


def _invalid_source(s: _State) -> List[Action]:
    return [_error([_plain("Invalid source chain "), _bold(s.parsed.source_chain)])]


def _source_candidates(s: _State) -> List[Action]:
    command = s.parsed.command
    ranked = rank_chains(
        s.chains,
        preferred_chain_id=s.ctx.source_chain_id,
        recent_ids=s.ctx.recent.source_chains,
        limit=CHAIN_CANDIDATE_LIMIT,
    )
    return [
        _candidate(s.ctx, f"{command} from {chain.short_alias} to ", _route(command, chain.short_alias))
        for chain in ranked
    ]


def _source_fuzzy(s: _State) -> List[Action]:
    command = s.parsed.command
    return [
        _candidate(s.ctx, f"{command} from {match.matched_alias} to ", _route(command, match.matched_alias))
        for match in s.source.fuzzy[:CHAIN_CANDIDATE_LIMIT]
    ]


def _invalid_to(s: _State) -> List[Action]:
    p = s.parsed
    return [_error(
        [_plain("Invalid command "), _bold(f"{p.command} from {p.source_chain} {p.to_keyword}")],
        s.ctx, f"{p.command} from {p.source_chain} {TO_KEYWORD} ",
    )]


def _complete_to(s: _State) -> List[Action]:
    p = s.parsed
    return [_candidate(s.ctx, f"{p.command} from {p.source_chain} {TO_KEYWORD} ", _route(p.command, p.source_chain))]


def _invalid_target(s: _State) -> List[Action]:
    return [_error([_plain("Invalid target chain "), _bold(s.parsed.target_chain)])]


def _target_candidates(s: _State) -> List[Action]:
    p = s.parsed
    ranked = rank_chains(
        s.chains,
        preferred_chain_id=s.ctx.target_chain_id,
        recent_ids=s.ctx.recent.target_chains,
        exclude_ids=[s.source_chain.chain_id] if s.source_chain else [],
        limit=CHAIN_CANDIDATE_LIMIT,
    )
    return [
        _candidate(
            s.ctx, f"{p.command} from {p.source_chain} to {chain.short_alias}, ",
            _route(p.command, p.source_chain, chain.short_alias),
        )
        for chain in ranked
    ]


def _target_fuzzy(s: _State) -> List[Action]:
    p = s.parsed
    return [
        _candidate(
            s.ctx, f"{p.command} from {p.source_chain} to {match.matched_alias}, ",
            _route(p.command, p.source_chain, match.matched_alias),
        )
        for match in s.target_fuzzy[:CHAIN_CANDIDATE_LIMIT]
    ]


def _add_splitter(s: _State) -> List[Action]:
    p = s.parsed
    value = f"{p.command} from {p.source_chain} to {p.target_chain}, "
    return [_candidate(s.ctx, value, _route(p.command, p.source_chain, p.target_chain))]


def _invalid_amount(s: _State) -> List[Action]:
    return [_error([_plain("Invalid amount "), _bold(s.parsed.amount)])]


def _amount_hint(s: _State) -> List[Action]:
    p = s.parsed
    return [_tips([_plain("Format: ")] + _route(p.command, p.source_chain, p.target_chain)
                  + [_plain(" "), _highlight("[quantity] [symbol]")])]


def _recent_token_allowed(s: _State, symbol: Optional[str], address: Optional[str]) -> bool:
    if address:
        # cached addresses must match the source chain's address syntax
        return s.source_chain is not None and s.ctx.validators.check(s.source_chain.family, address)
    return bool(symbol)


def _token_candidates(s: _State) -> List[Action]:
    p = s.parsed
    prefix = f"{p.command} from {p.source_chain} to {p.target_chain}, {p.amount}"
    route = _route(p.command, p.source_chain, p.target_chain)
    actions = [_tips([_plain("Format: ")] + route + [_plain(" "), _highlight(f"{p.amount} [symbol]")])]

    recent = []
    seen = set()
    for token in s.ctx.recent.tokens:
        if token.identity in seen or not _recent_token_allowed(s, token.symbol, token.contract_address):
            continue
        seen.add(token.identity)
        asset = token.symbol or token.contract_address
        recent.append(_candidate(s.ctx, f"{prefix} {asset}", route + [_plain(" "), _highlight(f"{p.amount} {asset}")]))
    actions += _group("Recently used tokens", "Recently used:", recent)

    wallet = []
    if s.wallet_tokens_visible:
        symbols = set()
        for token in s.ctx.tokens.tokens:
            if not token.symbol or not token.has_balance or token.symbol in symbols:
                continue
            symbols.add(token.symbol)
            value = f"{prefix} {token.symbol}"
            wallet.append(_candidate(
                s.ctx, value, route + [_plain(" "), _highlight(f"{p.amount} {token.symbol}")],
                key=f"{value}-{token.symbol}",
            ))
    return actions + _group("From your wallet", "From your wallet:", wallet)


def _recent_nft_allowed(s: _State, symbol: Optional[str], address: Optional[str], token_id: Optional[str]) -> bool:
    chain = s.source_chain
    if chain is None:
        return False
    if chain.family == ChainFamily.EVM:
        return bool((address and address.startswith("0x")) or symbol) and bool(token_id)
    if chain.family == ChainFamily.SOLANA:
        return bool(address) and not address.startswith("0x")
    return False


def _nft_candidates(s: _State) -> List[Action]:
    p = s.parsed
    prefix = f"{p.command} from {p.source_chain} to {p.target_chain}, "
    route = _route(p.command, p.source_chain, p.target_chain)
    hint = "[Solana Public Key]" if s.on_solana else "[NFT name]#[NFT Id]"
    actions = [_tips([_plain("Format: ")] + route + [_plain(" "), _highlight(hint)])]

    recent = []
    for token in s.ctx.recent.tokens:
        if not _recent_nft_allowed(s, token.symbol, token.contract_address, token.token_id):
            continue
        ref = _token_ref(token.contract_address or token.symbol, token.token_id)
        recent.append(_candidate(s.ctx, prefix + ref, route + [_plain(" "), _highlight(ref)]))
    actions += _group("Recently used tokens", "Recently used:", recent)

    wallet = []
    if s.wallet_tokens_visible:
        for token in s.ctx.tokens.tokens:
            asset = token.contract_address if s.on_solana else (token.symbol or token.contract_address)
            if not asset or token.is_native_asset or not token.has_balance:
                continue
            ref = _token_ref(asset, None if s.on_solana else token.token_id)
            wallet.append(_candidate(
                s.ctx, prefix + ref, route + [_plain(" "), _highlight(ref)],
                key=f"{prefix}{ref}-{token.contract_address}",
            ))
    return actions + _group("From your wallet", "From your wallet:", wallet)


def _token_id_hint(s: _State) -> List[Action]:
    p = s.parsed
    return [_tips([_plain("Format: ")] + _route(p.command, p.source_chain, p.target_chain)
                  + [_plain(" "), _highlight(f"{p.asset}#[NFT Id]")])]


def _invalid_contract(s: _State) -> List[Action]:
    return [_error([_plain("Invalid contract address "), _bold(s.parsed.contract_address)])]


def _final_error(s: _State) -> List[Action]:
    flags = validate_finalize(s.parsed, s.ctx.mode, s.ctx.catalog, s.ctx.validators)
    return [_error([_plain(flags.error)])]


def _submit(s: _State) -> List[Action]:
    wallet = s.ctx.wallet
    if wallet.error in (WALLET_ERROR_INCORRECT_CHAIN, WALLET_ERROR_INCORRECT_WALLET):
        target = "to connect to network"
    elif wallet.state == WalletState.DISCONNECTED or not wallet.address:
        target = "to connect wallet"
    else:
        target = "to confirm and submit"
    return [Action(
        key="submit",
        display=(_plain(f"Press enter or click here {target}"),),
        style=ActionStyle.TIPS,
        on_activate=s.ctx.on_finish,
    )]


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Rule:
    name: str
    predicate: Callable[[_State], bool]
    producer: Callable[[_State], List[Action]]


def _lower(value: Optional[str]) -> str:
    return (value or "").lower()


RULES: Tuple[Rule, ...] = (
    Rule("execution_error", lambda s: bool(s.ctx.execution_error), _execution_error),
    Rule("processing", lambda s: s.ctx.processing, _processing),
    Rule("empty", lambda s: not s.ctx.raw_text, _format_hint),
    Rule("invalid_command", lambda s: not s.flags.is_valid_command, _invalid_command),
    Rule("invalid_from", lambda s: not s.flags.is_valid_from_keyword, _invalid_from),
    Rule("complete_command",
         lambda s: _lower(s.parsed.command) != BRIDGE_COMMAND or _lower(s.parsed.from_keyword) != FROM_KEYWORD,
         _complete_command),
    Rule("invalid_source", lambda s: bool(s.parsed.source_chain) and not s.source.found, _invalid_source),
    Rule("source_candidates", lambda s: not s.parsed.source_chain, _source_candidates),
    Rule("source_fuzzy", lambda s: s.source.exact is None and bool(s.source.fuzzy), _source_fuzzy),
    Rule("invalid_to", lambda s: not s.flags.is_valid_to_keyword, _invalid_to),
    Rule("complete_to", lambda s: _lower(s.parsed.to_keyword) != TO_KEYWORD, _complete_to),
    Rule("same_target",
         lambda s: bool(s.parsed.target_chain) and _lower(s.parsed.target_chain) == _lower(s.parsed.source_chain),
         _invalid_target),
    Rule("target_candidates", lambda s: not s.parsed.target_chain, _target_candidates),
    Rule("target_fuzzy", lambda s: s.target.exact is None and bool(s.target_fuzzy), _target_fuzzy),
    Rule("invalid_target", lambda s: s.target.exact is None, _invalid_target),
    Rule("add_splitter", lambda s: s.parsed.fragment_splitter is None, _add_splitter),
    Rule("invalid_amount", lambda s: not s.flags.is_valid_amount, _invalid_amount),
    Rule("amount_hint", lambda s: not s.is_nft and not s.parsed.amount, _amount_hint),
    Rule("token_candidates",
         lambda s: not s.is_nft and not s.parsed.symbol and not s.parsed.contract_address,
         _token_candidates),
    Rule("nft_candidates",
         lambda s: s.is_nft and not s.parsed.symbol and not s.parsed.contract_address,
         _nft_candidates),
    Rule("token_id_hint", lambda s: s.is_nft and not s.on_solana and not s.parsed.token_id, _token_id_hint),
    Rule("invalid_contract", lambda s: not s.flags.is_valid_contract_address, _invalid_contract),
    Rule("final_error",
         lambda s: not validate_finalize(s.parsed, s.ctx.mode, s.ctx.catalog, s.ctx.validators).is_valid,
         _final_error),
    Rule("submit", lambda s: True, _submit),
)


def match_rule(ctx: SuggestionContext, rules: Sequence[Rule] = RULES) -> Tuple[Rule, _State]:
    """First rule whose predicate holds for the context."""
    state = _state(ctx)
    for rule in rules:
        if rule.predicate(state):
            return rule, state
    raise LookupError("suggestion rule table has no terminal rule")


def build_suggestions(ctx: SuggestionContext) -> List[Action]:
    rule, state = match_rule(ctx)
    actions = rule.producer(state)
    logger.debug(f"💡 Rule '{rule.name}' produced {len(actions)} actions for '{ctx.raw_text}'")
    return actions


def has_error(actions: Sequence[Action]) -> bool:
    """Whether the input box should be shown in its error state."""
    return any(action.style == ActionStyle.ERROR for action in actions)
