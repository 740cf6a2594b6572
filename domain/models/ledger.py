"""
Prize ledger domain models: pools, deposits, payouts and asset identifiers.

All amounts are non-negative Python ints in the asset's smallest unit.
"""

import re
from dataclasses import dataclass
from enum import Enum

NATIVE_TOKEN = "NATIVE"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
# Placeholder many wallets and aggregators use for the chain's native coin
NATIVE_PLACEHOLDER_ADDRESS = "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"

_ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")


def is_address(value: str | None) -> bool:
    """Return True for a 0x-prefixed, 40 hex digit account address."""
    return bool(value) and bool(_ADDRESS_RE.fullmatch(value))


def is_native_token(token: str | None) -> bool:
    """
    Check whether a currency identifier denotes the chain's native asset.

    Empty values, the zero address, the 0xEeee... placeholder and the NATIVE
    sentinel itself (any case) all count as native.
    """
    if not token:
        return True
    lowered = token.strip().lower()
    return lowered in {NATIVE_TOKEN.lower(), ZERO_ADDRESS, NATIVE_PLACEHOLDER_ADDRESS}


def is_contract_token(token: str | None) -> bool:
    """A contract-backed asset is any valid address that is not a native placeholder."""
    return is_address(token) and not is_native_token(token)


def normalize_token(currency: str | None) -> str:
    """
    Map a raw currency identifier to its ledger token.

    Raises:
        ValueError: If the identifier is neither native nor a contract address
    """
    currency = (currency or "").strip()
    if is_native_token(currency):
        return NATIVE_TOKEN
    if is_contract_token(currency):
        return currency.lower()
    raise ValueError(f"Unrecognized asset identifier: {currency!r}")


class PayoutStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class Pool:
    game_id: str
    token: str
    tracked_balance: int
    last_updated: float


@dataclass(frozen=True)
class Deposit:
    """
    One observed tip. `after_close` marks tips that arrived once the round
    was already PAYOUT_PENDING.
    """

    id: str
    game_id: str
    sender: str
    token: str
    amount: int
    at: float
    after_close: bool = False


@dataclass(frozen=True)
class Payout:
    id: str
    game_id: str
    token: str
    amount: int
    tx_hash: str
    status: PayoutStatus
    created_at: float


@dataclass(frozen=True)
class PayoutPlanEntry:
    token: str
    amount: int


@dataclass(frozen=True)
class TransferInstruction:
    """A single asset movement handed to the asset transport."""

    to: str
    token: str
    amount: int


@dataclass(frozen=True)
class PayoutReceipt:
    tx_reference: str
    entries: tuple[PayoutPlanEntry, ...]
