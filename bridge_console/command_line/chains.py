from functools import lru_cache
from pathlib import Path
from typing import List

import yaml
from pydantic import ValidationError

from .config import settings
from .logging_utils import setup_engine_logger
from .models import ChainAliasEntry, ChainCatalog

logger = setup_engine_logger("chains")


def load_catalog(chains_file: Path) -> ChainCatalog:
    """
    YAMLのチェーン定義ファイルを読み込み、ChainCatalogに変換

    Args:
        chains_file: chains.ymlファイルのパス

    Returns:
        ChainCatalog: 読み込まれたカタログ（ファイルが無い場合は空）

    Processing:
        1. ファイル存在確認
        2. YAML解析
        3. 各チェーンをChainAliasEntryに変換（不正な項目はスキップ）
        4. allow-listはカタログに存在するchain_idのみ残す
    """
    if not chains_file.exists():
        logger.warning(f"⚠️ Chain catalog not found: {chains_file}")
        return ChainCatalog()
    data = yaml.safe_load(chains_file.read_text(encoding="utf-8"))
    if not data:
        return ChainCatalog()
    if not isinstance(data, dict):
        raise ValueError(f"Chain catalog root must be a mapping: {chains_file}")

    entries: List[ChainAliasEntry] = []
    seen_ids = set()
    for item in data.get("chains") or []:
        try:
            entry = ChainAliasEntry(**item)
        except (TypeError, ValidationError) as e:
            logger.warning(f"⚠️ Skipping malformed chain entry {item!r}: {e}")
            continue
        if entry.chain_id in seen_ids:
            logger.warning(f"⚠️ Skipping duplicate chain id {entry.chain_id}")
            continue
        seen_ids.add(entry.chain_id)
        entries.append(entry)

    token_bridge = [cid for cid in data.get("token_bridge") or [] if cid in seen_ids]
    nft_bridge = [cid for cid in data.get("nft_bridge") or [] if cid in seen_ids]

    logger.debug(f"📚 Loaded {len(entries)} chains ({len(token_bridge)} token, {len(nft_bridge)} nft)")
    return ChainCatalog(entries=entries, token_bridge=token_bridge, nft_bridge=nft_bridge)


@lru_cache(maxsize=1)
def default_catalog() -> ChainCatalog:
    """Catalog named by the CHAINS_FILE setting, loaded once."""
    return load_catalog(Path(settings.chains_file))
