import pytest

from command_line.chains import load_catalog
from command_line.config import DEFAULT_CHAINS_FILE
from command_line.models import BridgeMode


@pytest.fixture(scope="session")
def catalog():
    return load_catalog(DEFAULT_CHAINS_FILE)


@pytest.fixture(scope="session")
def token_chains(catalog):
    return catalog.chains_for(BridgeMode.TOKEN)


@pytest.fixture(scope="session")
def nft_chains(catalog):
    return catalog.chains_for(BridgeMode.NFT)
