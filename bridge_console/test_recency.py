import json

import pytest

from command_line.models import BridgeMode, RecentToken
from command_line.recency import (
    InMemoryStore,
    JsonFileStore,
    RecencyCache,
    RecencyList,
    create_store,
)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def cache(store):
    return RecencyCache(store)


class TestRecencyList:
    def test_push_front_and_dedupe(self, store):
        recent = RecencyList(store, "k", capacity=3)
        recent.push("a")
        recent.push("b")
        recent.push("a")
        assert recent.items() == ["a", "b"]

    def test_capacity(self, store):
        recent = RecencyList(store, "k", capacity=3)
        for value in "abcdef":
            recent.push(value)
        assert recent.items() == ["f", "e", "d"]

    def test_reads_do_not_mutate(self, store):
        store.set("k", ["x", "y"])
        recent = RecencyList(store, "k", capacity=1)
        assert recent.items() == ["x", "y"]
        assert store.get("k") == ["x", "y"]

    def test_bounds_hold_after_many_pushes(self, store):
        recent = RecencyList(store, "k", capacity=10)
        for i in range(100):
            recent.push(i % 13)
            items = recent.items()
            assert len(items) <= 10
            assert len(set(items)) == len(items)


class TestRecencyCache:
    def test_commands_are_scoped_by_mode(self, cache):
        cache.record_command("bridge from eth to sol, 1 ETH", BridgeMode.TOKEN)
        cache.record_command("bridge from eth to sol, Punk#1", BridgeMode.NFT)
        assert cache.snapshot(BridgeMode.TOKEN).commands == ["bridge from eth to sol, 1 ETH"]
        assert cache.snapshot(BridgeMode.NFT).commands == ["bridge from eth to sol, Punk#1"]

    def test_command_capacity(self, cache):
        for i in range(15):
            cache.record_command(f"bridge from eth to sol, {i} ETH", BridgeMode.TOKEN)
        commands = cache.snapshot(BridgeMode.TOKEN).commands
        assert len(commands) == 10
        assert commands[0] == "bridge from eth to sol, 14 ETH"

    def test_chains_are_shared_across_modes(self, cache):
        cache.record_source_chain(2)
        cache.record_source_chain(1)
        cache.record_source_chain(2)
        cache.record_target_chain(1)
        assert cache.snapshot(BridgeMode.TOKEN).source_chains == [2, 1]
        assert cache.snapshot(BridgeMode.NFT).target_chains == [1]

    def test_tokens_dedupe_on_all_three_fields(self, cache):
        cache.record_token(RecentToken(symbol="Punk", token_id="1"), BridgeMode.NFT)
        cache.record_token(RecentToken(symbol="Punk", token_id="2"), BridgeMode.NFT)
        cache.record_token(RecentToken(symbol="Punk", token_id="1"), BridgeMode.NFT)
        tokens = cache.snapshot(BridgeMode.NFT).tokens
        assert [t.token_id for t in tokens] == ["1", "2"]

    def test_token_capacity(self, cache):
        for symbol in ["A", "B", "C", "D", "E", "F", "G"]:
            cache.record_token(RecentToken(symbol=symbol), BridgeMode.TOKEN)
        tokens = cache.snapshot(BridgeMode.TOKEN).tokens
        assert [t.symbol for t in tokens] == ["G", "F", "E", "D", "C"]

    def test_tokens_stored_as_plain_objects(self, cache, store):
        cache.record_token(RecentToken(contract_address="0xabc"), BridgeMode.TOKEN)
        assert store.get("recentlyUsedToken") == [{"contractAddress": "0xabc"}]

    def test_malformed_entries_are_dropped(self, store):
        store.set("recentlyUsedSourceChain", [2, "eth", None, True, 5])
        store.set("recentlyUsedToken", ["USDC", {"symbol": "DAI"}])
        snapshot = RecencyCache(store).snapshot(BridgeMode.TOKEN)
        assert snapshot.source_chains == [2, 5]
        assert snapshot.tokens == [RecentToken(symbol="DAI")]


class TestJsonFileStore:
    def test_persists_between_instances(self, tmp_path):
        path = tmp_path / "recent.json"
        RecencyCache(JsonFileStore(path)).record_source_chain(2)
        RecencyCache(JsonFileStore(path)).record_source_chain(5)
        assert RecencyCache(JsonFileStore(path)).snapshot(BridgeMode.TOKEN).source_chains == [5, 2]
        assert json.loads(path.read_text(encoding="utf-8")) == {"recentlyUsedSourceChain": [5, 2]}

    def test_missing_or_corrupt_file_reads_empty(self, tmp_path):
        path = tmp_path / "recent.json"
        assert JsonFileStore(path).get("anything") == []
        path.write_text("{not json", encoding="utf-8")
        assert JsonFileStore(path).get("anything") == []

    def test_create_store(self, tmp_path):
        assert isinstance(create_store(""), InMemoryStore)
        assert isinstance(create_store(str(tmp_path / "r.json")), JsonFileStore)
