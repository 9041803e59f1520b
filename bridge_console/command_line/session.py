from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol

from .address import DEFAULT_VALIDATORS, AddressValidators
from .chains import default_catalog
from .logging_utils import log_submission, setup_engine_logger
from .models import (
    BridgeIntent,
    BridgeMode,
    ChainCatalog,
    ChainFamily,
    ParsedCommand,
    RecentToken,
    TokenBalance,
    TokenSnapshot,
    WalletSnapshot,
    WalletState,
)
from .parser import parse_command
from .recency import RecencyCache
from .suggestions import Action, SuggestionContext, build_suggestions
from .validation import source_match, target_match, validate_finalize


class BridgeHost(Protocol):
    """The surrounding bridge UI, seen through the snapshots and actions the session needs."""

    source_chain_id: Optional[int]
    target_chain_id: Optional[int]
    wallet: WalletSnapshot
    tokens: TokenSnapshot
    transfer_amount: Optional[str]

    def select_source_chain(self, chain_id: int) -> None: ...

    def select_target_chain(self, chain_id: int) -> None: ...

    def select_token(self, contract_address: str, token_id: Optional[str]) -> None: ...

    def set_transfer_amount(self, amount: str) -> None: ...

    def open_wallet_modal(self) -> None: ...

    def close(self) -> None: ...


@dataclass(frozen=True)
class PendingToken:
    amount: Optional[str] = None
    symbol: Optional[str] = None
    token_id: Optional[str] = None
    contract_address: Optional[str] = None


@dataclass(frozen=True)
class TokenResolution:
    found: bool
    token: Optional[TokenBalance] = None
    error: Optional[str] = None


def _same(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()


class CommandSession:
    """Holds the text box state and drives a validated command through the host.

    The host calls ``sync()`` whenever its wallet, token or amount snapshots change.
    """

    def __init__(self,
                 host: BridgeHost,
                 cache: RecencyCache,
                 mode: BridgeMode = BridgeMode.TOKEN,
                 catalog: Optional[ChainCatalog] = None,
                 validators: Optional[AddressValidators] = None):
        self.host = host
        self.cache = cache
        self.mode = mode
        self.catalog = catalog or default_catalog()
        self.validators = validators or DEFAULT_VALIDATORS
        self.logger = setup_engine_logger("session")

        self.command = ""
        self.execution_error: Optional[str] = None
        self.pending: Optional[PendingToken] = None
        self.token_fetch_started = False
        self.selected_token: Optional[TokenBalance] = None

    @property
    def parsed(self) -> ParsedCommand:
        return parse_command(self.command, self.mode, self.catalog)

    @property
    def processing(self) -> bool:
        return self.pending is not None

    def _clear_state(self) -> None:
        self.token_fetch_started = False
        self.pending = None
        self.selected_token = None

    def _set_error(self, message: Optional[str]) -> None:
        self.execution_error = message
        if message:
            self._clear_state()

    def update_command(self, command: str) -> None:
        self.command = command
        if self.execution_error:
            self._set_error(None)

    def context(self) -> SuggestionContext:
        return SuggestionContext(
            raw_text=self.command,
            mode=self.mode,
            catalog=self.catalog,
            execution_error=self.execution_error,
            processing=self.processing,
            source_chain_id=self.host.source_chain_id,
            target_chain_id=self.host.target_chain_id,
            wallet=self.host.wallet,
            tokens=self.host.tokens,
            recent=self.cache.snapshot(self.mode),
            validators=self.validators,
            on_change=self.update_command,
            on_finish=self.submit,
        )

    def suggestions(self) -> List[Action]:
        return build_suggestions(self.context())

    def submit(self) -> Optional[BridgeIntent]:
        """Handle the finish event (Enter key or click)."""
        if self.pending is not None:
            return None

        self._set_error(None)
        self.token_fetch_started = False

        parsed = self.parsed
        flags = validate_finalize(parsed, self.mode, self.catalog, self.validators)
        if flags.error:
            self._set_error(flags.error)
            log_submission(self.logger, self.command, self.mode.value, False, "validate", error=flags.error)
            return None

        source = source_match(parsed, self.mode, self.catalog)
        target = target_match(parsed, self.mode, self.catalog)
        if source.chain.chain_id != self.host.source_chain_id:
            self.host.select_source_chain(source.chain.chain_id)
        elif self.host.wallet.is_ready:
            self.token_fetch_started = True

        if target.chain.chain_id != self.host.target_chain_id:
            self.host.select_target_chain(target.chain.chain_id)

        self.pending = PendingToken(
            amount=parsed.amount,
            symbol=parsed.symbol,
            token_id=parsed.token_id,
            contract_address=parsed.contract_address,
        )
        intent = BridgeIntent(
            mode=self.mode,
            command=self.command,
            source_chain_id=source.chain.chain_id,
            target_chain_id=target.chain.chain_id,
            amount=parsed.amount,
            symbol=parsed.symbol,
            contract_address=parsed.contract_address,
            token_id=parsed.token_id,
        )
        log_submission(self.logger, self.command, self.mode.value, True, "validate",
                       source_chain_id=intent.source_chain_id, target_chain_id=intent.target_chain_id,
                       asset=parsed.asset)
        self.sync()
        return intent

    def sync(self) -> None:
        """Advance a pending submission from the host's current snapshots."""
        if self.pending is None:
            return

        wallet = self.host.wallet
        tokens = self.host.tokens

        if self.selected_token is not None:
            self._apply_amount()
            return

        if wallet.state == WalletState.DISCONNECTED or (wallet.state == WalletState.CONNECTED and not wallet.address):
            self.host.open_wallet_modal()
            return

        if tokens.loading:
            self.token_fetch_started = True
            return

        if wallet.is_ready and self.token_fetch_started:
            if tokens.error:
                self._set_error(tokens.error)
                log_submission(self.logger, self.command, self.mode.value, False, "fetch_tokens", error=tokens.error)
                return
            self.resolve_token(tokens)

    def _find_token(self, tokens: TokenSnapshot) -> Optional[TokenBalance]:
        pending = self.pending
        source = source_match(self.parsed, self.mode, self.catalog)
        needs_token_id = source is not None and source.chain.family != ChainFamily.SOLANA

        for token in tokens.tokens:
            asset_matched = (
                _same(pending.symbol, token.symbol)
                or _same(pending.symbol, token.name)
                or _same(pending.contract_address, token.contract_address)
            )
            if self.mode != BridgeMode.NFT:
                if asset_matched:
                    return token
                continue
            token_id_matched = _same(pending.token_id, token.token_id) if needs_token_id else True
            if asset_matched and token_id_matched:
                return token
        return None

    def resolve_token(self, tokens: TokenSnapshot) -> TokenResolution:
        """Match the pending asset against the wallet's tokens and record the command."""
        if self.pending is None:
            return TokenResolution(found=False)

        parsed = self.parsed
        token = self._find_token(tokens)
        if token is None:
            asset = parsed.asset or ""
            if self.mode == BridgeMode.NFT and parsed.token_id:
                asset = f"{asset}#{parsed.token_id}"
            message = f"You don't have {asset}"
            self._set_error(message)
            log_submission(self.logger, self.command, self.mode.value, False, "resolve_token",
                           asset=asset, error=message)
            return TokenResolution(found=False, error=message)

        self.host.select_token(token.contract_address, token.token_id)
        self._record(parsed)
        log_submission(self.logger, self.command, self.mode.value, True, "resolve_token",
                       asset=token.contract_address)

        if self.mode == BridgeMode.NFT:
            # no amount step for NFTs
            self.finish()
        else:
            self.selected_token = token
            self._apply_amount()
        return TokenResolution(found=True, token=token)

    def _apply_amount(self) -> None:
        amount = self.pending.amount if self.pending else None
        if not amount:
            return
        if self.host.transfer_amount != amount:
            self.host.set_transfer_amount(amount)
        if self.host.transfer_amount == amount:
            self.finish()

    def _record(self, parsed: ParsedCommand) -> None:
        self.cache.record_command(self.command, self.mode)
        source = source_match(parsed, self.mode, self.catalog)
        if source is not None:
            self.cache.record_source_chain(source.chain.chain_id)
        target = target_match(parsed, self.mode, self.catalog)
        if target is not None:
            self.cache.record_target_chain(target.chain.chain_id)
        if parsed.symbol or parsed.token_id or parsed.contract_address:
            self.cache.record_token(
                RecentToken(symbol=parsed.symbol, contract_address=parsed.contract_address, token_id=parsed.token_id),
                self.mode,
            )

    def finish(self) -> None:
        self.update_command("")
        self._clear_state()
        self.host.close()
