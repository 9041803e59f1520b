from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from .models import ChainAliasEntry


@dataclass(frozen=True)
class ChainMatch:
    matched_alias: str
    chain: ChainAliasEntry


@dataclass(frozen=True)
class ChainResolution:
    exact: Optional[ChainMatch] = None
    fuzzy: List[ChainMatch] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.exact is not None or bool(self.fuzzy)


def resolve_exact(name: Optional[str], chains: Sequence[ChainAliasEntry]) -> Optional[ChainMatch]:
    """
    エイリアスの完全一致でチェーンを特定する（大文字小文字区別なし）

    An entry with several equal aliases reports the shortest one.
    """
    if not name:
        return None
    q = name.lower()
    for chain in chains:
        for alias in chain.aliases_by_length:
            if alias.lower() == q:
                return ChainMatch(matched_alias=alias, chain=chain)
    return None


def resolve_fuzzy(name: Optional[str], chains: Sequence[ChainAliasEntry]) -> List[ChainMatch]:
    """
    前方一致の候補を返す（完全一致が存在する場合は空）

    Every alias that starts with the search string and is not equal to it,
    in catalog order. A chain may appear once per matching alias.
    """
    if not name or resolve_exact(name, chains) is not None:
        return []
    q = name.lower()
    matches = []
    for chain in chains:
        for alias in chain.aliases_by_length:
            candidate = alias.lower()
            if candidate != q and candidate.startswith(q):
                matches.append(ChainMatch(matched_alias=alias, chain=chain))
    return matches


def resolve_chain(name: Optional[str], chains: Sequence[ChainAliasEntry]) -> ChainResolution:
    exact = resolve_exact(name, chains)
    if exact is not None:
        return ChainResolution(exact=exact)
    return ChainResolution(fuzzy=resolve_fuzzy(name, chains))


def rank_chains(chains: Sequence[ChainAliasEntry],
                preferred_chain_id: Optional[int] = None,
                recent_ids: Sequence[int] = (),
                exclude_ids: Iterable[int] = (),
                limit: int = 10) -> List[ChainAliasEntry]:
    """Order candidate chains without touching the input sequence.

    The preferred (connected) chain comes first, then chains by their position
    in the recency list, then the remaining chains in catalog order.
    """
    excluded = set(exclude_ids)
    recent_rank = {}
    for idx, chain_id in enumerate(recent_ids):
        recent_rank.setdefault(chain_id, idx)

    def sort_key(item: tuple[int, ChainAliasEntry]):
        position, chain = item
        if chain.chain_id == preferred_chain_id:
            return (0, 0, position)
        if chain.chain_id in recent_rank:
            return (1, recent_rank[chain.chain_id], position)
        return (2, 0, position)

    candidates = [(pos, chain) for pos, chain in enumerate(chains) if chain.chain_id not in excluded]
    candidates.sort(key=sort_key)
    return [chain for _, chain in candidates[:limit]]
