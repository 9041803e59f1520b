from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from web3 import Web3

from .models import ChainFamily

AddressPredicate = Callable[[str], bool]

# Web3.is_address also takes unprefixed hex; the command grammar requires 0x
_EVM_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")

# Solana base58 public key (no 0/O/I/l)
_BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_BASE58_PATTERN = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def is_evm_address(address: str) -> bool:
    """Accepts all-lowercase or all-uppercase hex, or a correct checksum."""
    if not address or not _EVM_PATTERN.match(address):
        return False
    return Web3.is_address(address)


def is_solana_address(address: str) -> bool:
    """Base58 string that decodes to a 32-byte public key."""
    if not address or not _BASE58_PATTERN.match(address):
        return False
    value = 0
    for ch in address:
        value = value * 58 + _BASE58_ALPHABET.index(ch)
    leading_zeros = len(address) - len(address.lstrip("1"))
    size = leading_zeros + (value.bit_length() + 7) // 8
    return size == 32


@dataclass(frozen=True)
class AddressValidators:
    """Address syntax predicates, one per chain family."""
    evm: AddressPredicate = is_evm_address
    solana: AddressPredicate = is_solana_address

    def check(self, family: ChainFamily, address: str) -> bool:
        if family == ChainFamily.EVM:
            return self.evm(address)
        if family == ChainFamily.SOLANA:
            return self.solana(address)
        return True


DEFAULT_VALIDATORS = AddressValidators()
