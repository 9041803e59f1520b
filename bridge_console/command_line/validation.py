from __future__ import annotations

import re
from dataclasses import dataclass, fields
from typing import Optional

from .address import DEFAULT_VALIDATORS, AddressValidators
from .chains import default_catalog
from .models import BridgeMode, ChainCatalog, ChainFamily, ParsedCommand
from .parser import FRAGMENT_SPLITTER
from .resolver import ChainMatch, resolve_exact

BRIDGE_COMMAND = "bridge"
VALID_COMMANDS = (BRIDGE_COMMAND,)
FROM_KEYWORD = "from"
TO_KEYWORD = "to"
AMOUNT_PATTERN = re.compile(r"^[0-9.]*$")


@dataclass(frozen=True)
class PartialFlags:
    """Per-field validity while the user is still typing (absent means valid)."""
    is_valid_command: bool = True
    is_valid_from_keyword: bool = True
    is_valid_source_chain: bool = True
    is_valid_to_keyword: bool = True
    is_valid_target_chain: bool = True
    is_valid_amount: bool = True
    is_valid_contract_address: bool = True

    @property
    def is_valid(self) -> bool:
        return all(getattr(self, f.name) for f in fields(self))


@dataclass(frozen=True)
class FinalFlags:
    """Per-field validity on submit, plus the single surfaced error message."""
    is_valid_command: bool
    is_valid_from_keyword: bool
    is_valid_source_chain: bool
    is_valid_to_keyword: bool
    is_valid_target_chain: bool
    is_valid_fragment_splitter: bool
    is_valid_amount: bool
    is_valid_symbol: bool
    is_valid_token_id: bool
    is_valid_contract_address: bool
    error: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.error is None


def _is_prefix(literal: str, value: str) -> bool:
    return literal.startswith(value.lower())


def _same_alias(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()


def _address_ok(match: Optional[ChainMatch], address: str, validators: AddressValidators) -> bool:
    return match is not None and validators.check(match.chain.family, address)


def source_match(parsed: ParsedCommand, mode: BridgeMode, catalog: Optional[ChainCatalog] = None) -> Optional[ChainMatch]:
    catalog = catalog or default_catalog()
    return resolve_exact(parsed.source_chain, catalog.chains_for(mode))


def target_match(parsed: ParsedCommand, mode: BridgeMode, catalog: Optional[ChainCatalog] = None) -> Optional[ChainMatch]:
    catalog = catalog or default_catalog()
    return resolve_exact(parsed.target_chain, catalog.chains_for(mode))


def validate_partial(parsed: ParsedCommand,
                     mode: BridgeMode,
                     catalog: Optional[ChainCatalog] = None,
                     validators: Optional[AddressValidators] = None) -> PartialFlags:
    catalog = catalog or default_catalog()
    validators = validators or DEFAULT_VALIDATORS
    chains = catalog.chains_for(mode)
    source = resolve_exact(parsed.source_chain, chains)

    is_valid_command = True
    if parsed.command:
        is_valid_command = any(_is_prefix(cmd, parsed.command) for cmd in VALID_COMMANDS)

    is_valid_source_chain = True
    if parsed.source_chain:
        is_valid_source_chain = source is not None

    is_valid_target_chain = True
    if parsed.target_chain:
        is_valid_target_chain = (
            resolve_exact(parsed.target_chain, chains) is not None
            and not _same_alias(parsed.target_chain, parsed.source_chain)
        )

    is_valid_contract_address = True
    if parsed.contract_address and source is not None:
        is_valid_contract_address = validators.check(source.chain.family, parsed.contract_address)

    return PartialFlags(
        is_valid_command=is_valid_command,
        is_valid_from_keyword=_is_prefix(FROM_KEYWORD, parsed.from_keyword) if parsed.from_keyword else True,
        is_valid_source_chain=is_valid_source_chain,
        is_valid_to_keyword=_is_prefix(TO_KEYWORD, parsed.to_keyword) if parsed.to_keyword else True,
        is_valid_target_chain=is_valid_target_chain,
        is_valid_amount=bool(AMOUNT_PATTERN.match(parsed.amount)) if parsed.amount else True,
        is_valid_contract_address=is_valid_contract_address,
    )


def validate_finalize(parsed: ParsedCommand,
                      mode: BridgeMode,
                      catalog: Optional[ChainCatalog] = None,
                      validators: Optional[AddressValidators] = None) -> FinalFlags:
    catalog = catalog or default_catalog()
    validators = validators or DEFAULT_VALIDATORS
    chains = catalog.chains_for(mode)
    source = resolve_exact(parsed.source_chain, chains)
    target = resolve_exact(parsed.target_chain, chains)
    on_solana = source is not None and source.chain.family == ChainFamily.SOLANA

    checks = [
        ("command",
         bool(parsed.command) and parsed.command.lower() in VALID_COMMANDS,
         f"Invalid command: {parsed.command}"),
        ("from_keyword",
         bool(parsed.from_keyword) and parsed.from_keyword.lower() == FROM_KEYWORD,
         f"Invalid keyword: {parsed.from_keyword}, expected '{FROM_KEYWORD}'"),
        ("source_chain",
         source is not None,
         f"Invalid source chain: {parsed.source_chain}"),
        # "to" is checked between the two chains, matching its position in the grammar
        ("to_keyword",
         bool(parsed.to_keyword) and parsed.to_keyword.lower() == TO_KEYWORD,
         f"Invalid keyword: {parsed.to_keyword}, expected '{TO_KEYWORD}'"),
        ("target_chain",
         target is not None and not _same_alias(parsed.target_chain, parsed.source_chain),
         f"Invalid destination chain: {parsed.target_chain}"),
        ("fragment_splitter",
         parsed.fragment_splitter == FRAGMENT_SPLITTER,
         f"Missing '{FRAGMENT_SPLITTER}' after destination chain: {parsed.target_chain}"),
        ("amount",
         mode == BridgeMode.NFT or (bool(parsed.amount) and bool(AMOUNT_PATTERN.match(parsed.amount))),
         f"Invalid amount: {parsed.amount}"),
        ("symbol",
         bool(parsed.symbol) or bool(parsed.contract_address),
         "Invalid symbol"),
        ("token_id",
         mode != BridgeMode.NFT or on_solana or bool(parsed.token_id),
         "Invalid token Id"),
        ("contract_address",
         _address_ok(source, parsed.contract_address, validators) if parsed.contract_address else bool(parsed.symbol),
         f"Invalid address: {parsed.contract_address}"),
    ]

    error = next((message for _, ok, message in checks if not ok), None)
    flags = {f"is_valid_{name}": ok for name, ok, _ in checks}
    return FinalFlags(error=error, **flags)
