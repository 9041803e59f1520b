from dataclasses import dataclass, field
from typing import List, Optional

import pytest

from command_line.models import BridgeMode, RecentToken, TokenBalance, TokenSnapshot, WalletSnapshot, WalletState
from command_line.recency import InMemoryStore, RecencyCache
from command_line.session import CommandSession

USDC_ETH = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
WSOL_MINT = "So11111111111111111111111111111111111111112"
READY = WalletSnapshot(state=WalletState.CONNECTED, address="0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed")


@dataclass
class FakeHost:
    source_chain_id: Optional[int] = None
    target_chain_id: Optional[int] = None
    wallet: WalletSnapshot = READY
    tokens: TokenSnapshot = field(default_factory=TokenSnapshot)
    transfer_amount: Optional[str] = None
    apply_amount_immediately: bool = True
    calls: List[tuple] = field(default_factory=list)

    def select_source_chain(self, chain_id):
        self.calls.append(("source", chain_id))
        self.source_chain_id = chain_id

    def select_target_chain(self, chain_id):
        self.calls.append(("target", chain_id))
        self.target_chain_id = chain_id

    def select_token(self, contract_address, token_id):
        self.calls.append(("token", contract_address, token_id))

    def set_transfer_amount(self, amount):
        self.calls.append(("amount", amount))
        if self.apply_amount_immediately:
            self.transfer_amount = amount

    def open_wallet_modal(self):
        self.calls.append(("wallet_modal",))

    def close(self):
        self.calls.append(("close",))


WALLET_TOKENS = TokenSnapshot(tokens=[
    TokenBalance(contract_address=USDC_ETH, symbol="USDC", name="USD Coin", ui_amount=25),
    TokenBalance(contract_address="0x6b175474e89094c44da98b954eedeac495271d0f", symbol="DAI", ui_amount=3),
])


@pytest.fixture
def cache():
    return RecencyCache(InMemoryStore())


@pytest.fixture
def make_session(catalog, cache):
    def _make(host, mode=BridgeMode.TOKEN):
        return CommandSession(host, cache, mode=mode, catalog=catalog)
    return _make


class TestSubmitValidation:
    def test_invalid_command_sets_error(self, make_session):
        host = FakeHost()
        session = make_session(host)
        session.update_command("bridge from eth to eth, 1 ETH")
        assert session.submit() is None
        assert session.execution_error == "Invalid destination chain: eth"
        assert host.calls == []
        assert [a.text for a in session.suggestions()] == ["Invalid destination chain: eth"]

    def test_editing_clears_error(self, make_session):
        session = make_session(FakeHost())
        session.update_command("bridge from eth to sol")
        session.submit()
        assert session.execution_error is not None
        session.update_command("bridge from eth to sol,")
        assert session.execution_error is None

    def test_returns_intent(self, make_session):
        host = FakeHost(source_chain_id=2, target_chain_id=1, tokens=TokenSnapshot(loading=True))
        session = make_session(host)
        session.update_command("Bridge from ethereum to solana, 1.5 USDC")
        intent = session.submit()
        assert intent.source_chain_id == 2
        assert intent.target_chain_id == 1
        assert intent.amount == "1.5"
        assert intent.symbol == "USDC"
        assert intent.mode == BridgeMode.TOKEN
        assert host.calls == []

    def test_second_submit_ignored_while_pending(self, make_session):
        host = FakeHost(wallet=WalletSnapshot())
        session = make_session(host)
        session.update_command("bridge from eth to sol, 1 USDC")
        assert session.submit() is not None
        assert session.submit() is None
        assert host.calls.count(("source", 2)) == 1
        assert [a.key for a in session.suggestions()] == ["loading"]


class TestTokenFlow:
    def test_chain_switch_then_token_load(self, make_session, cache):
        host = FakeHost()
        session = make_session(host)
        session.update_command("bridge from eth to sol, 10 USDC")
        session.submit()
        assert host.calls == [("source", 2), ("target", 1)]
        assert session.processing

        host.tokens = TokenSnapshot(loading=True)
        session.sync()
        assert session.token_fetch_started

        host.tokens = WALLET_TOKENS
        session.sync()
        assert host.calls[2:] == [("token", USDC_ETH, None), ("amount", "10"), ("close",)]
        assert host.transfer_amount == "10"
        assert session.command == ""
        assert not session.processing

        snapshot = cache.snapshot(BridgeMode.TOKEN)
        assert snapshot.commands == ["bridge from eth to sol, 10 USDC"]
        assert snapshot.source_chains == [2]
        assert snapshot.target_chains == [1]
        assert snapshot.tokens == [RecentToken(symbol="USDC")]

    def test_ready_wallet_on_right_chain_resolves_at_once(self, make_session):
        host = FakeHost(source_chain_id=2, target_chain_id=1, tokens=WALLET_TOKENS)
        session = make_session(host)
        session.update_command(f"bridge from eth to sol, 2 {USDC_ETH.lower()}")
        session.submit()
        assert host.calls == [("token", USDC_ETH, None), ("amount", "2"), ("close",)]

    def test_token_matched_by_name(self, make_session):
        tokens = TokenSnapshot(tokens=[TokenBalance(contract_address="0xabc", symbol="WETH", name="weth9", ui_amount=1)])
        host = FakeHost(source_chain_id=2, target_chain_id=1, tokens=tokens)
        session = make_session(host)
        session.update_command("bridge from eth to sol, 1 WETH9")
        session.submit()
        assert ("token", "0xabc", None) in host.calls

    def test_amount_applied_by_host_later(self, make_session):
        host = FakeHost(source_chain_id=2, target_chain_id=1, tokens=WALLET_TOKENS, apply_amount_immediately=False)
        session = make_session(host)
        session.update_command("bridge from eth to sol, 3 DAI")
        session.submit()
        assert ("close",) not in host.calls
        assert session.selected_token.symbol == "DAI"

        host.transfer_amount = "3"
        session.sync()
        assert host.calls[-1] == ("close",)
        assert session.selected_token is None

    def test_missing_token(self, make_session, cache):
        host = FakeHost(source_chain_id=2, target_chain_id=1, tokens=WALLET_TOKENS)
        session = make_session(host)
        session.update_command("bridge from eth to sol, 1 DOGE")
        session.submit()
        assert session.execution_error == "You don't have DOGE"
        assert not session.processing
        assert cache.snapshot(BridgeMode.TOKEN).commands == []
        assert [a.text for a in session.suggestions()] == ["You don't have DOGE"]

    def test_token_fetch_error(self, make_session):
        host = FakeHost(source_chain_id=2, target_chain_id=1, tokens=TokenSnapshot(error="Failed to load tokens"))
        session = make_session(host)
        session.update_command("bridge from eth to sol, 1 USDC")
        session.submit()
        assert session.execution_error == "Failed to load tokens"
        assert not session.processing


class TestWallet:
    def test_disconnected_wallet_opens_modal(self, make_session):
        host = FakeHost(source_chain_id=2, target_chain_id=1, wallet=WalletSnapshot())
        session = make_session(host)
        session.update_command("bridge from eth to sol, 1 USDC")
        session.submit()
        assert host.calls == [("wallet_modal",)]
        assert session.processing

    def test_connected_without_address_opens_modal(self, make_session):
        host = FakeHost(source_chain_id=2, target_chain_id=1, wallet=WalletSnapshot(state=WalletState.CONNECTED))
        session = make_session(host)
        session.update_command("bridge from eth to sol, 1 USDC")
        session.submit()
        assert host.calls == [("wallet_modal",)]

    def test_connecting_waits(self, make_session):
        host = FakeHost(source_chain_id=2, target_chain_id=1, wallet=WalletSnapshot(state=WalletState.CONNECTING))
        session = make_session(host)
        session.update_command("bridge from eth to sol, 1 USDC")
        session.submit()
        assert host.calls == []
        assert session.processing


class TestNFTFlow:
    def test_evm_nft(self, make_session, cache):
        tokens = TokenSnapshot(tokens=[TokenBalance(contract_address="0xabc", symbol="Punk", token_id="7", ui_amount=1)])
        host = FakeHost(source_chain_id=2, target_chain_id=1, tokens=tokens)
        session = make_session(host, BridgeMode.NFT)
        session.update_command("bridge from eth to sol, Punk#7")
        session.submit()
        assert host.calls == [("token", "0xabc", "7"), ("close",)]
        assert cache.snapshot(BridgeMode.NFT).tokens == [RecentToken(symbol="Punk", token_id="7")]
        assert cache.snapshot(BridgeMode.TOKEN).commands == []

    def test_wrong_token_id(self, make_session):
        tokens = TokenSnapshot(tokens=[TokenBalance(contract_address="0xabc", symbol="Punk", token_id="7", ui_amount=1)])
        host = FakeHost(source_chain_id=2, target_chain_id=1, tokens=tokens)
        session = make_session(host, BridgeMode.NFT)
        session.update_command("bridge from eth to sol, Punk#8")
        session.submit()
        assert session.execution_error == "You don't have Punk#8"

    def test_solana_nft_by_mint(self, make_session):
        tokens = TokenSnapshot(tokens=[TokenBalance(contract_address=WSOL_MINT, ui_amount=1)])
        host = FakeHost(source_chain_id=1, target_chain_id=2, tokens=tokens)
        session = make_session(host, BridgeMode.NFT)
        session.update_command(f"bridge from sol to eth, {WSOL_MINT}")
        intent = session.submit()
        assert intent.contract_address == WSOL_MINT
        assert intent.token_id is None
        assert host.calls == [("token", WSOL_MINT, None), ("close",)]
