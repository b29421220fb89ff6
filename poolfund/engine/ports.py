"""
Collaborator interfaces the fund engine depends on.

The engine never looks past these protocols: any token ledger or lending
market that honours them can back a fund. ``poolfund.adapters`` ships
in-memory implementations used by the sandbox deployment and the tests.

Identities (holders, the fund, the fee collector) are plain address strings.
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

ZERO_ADDRESS = "0x" + "0" * 40


def is_zero_address(address: Optional[str]) -> bool:
    return not address or address.lower() == ZERO_ADDRESS


def normalize_address(address: str) -> str:
    """Canonical form of an address: hex addresses compare case-insensitively."""
    return address.strip().lower()


class BaseAsset(Protocol):
    """A fungible token with the usual transfer / allowance interface."""

    address: str

    def decimals(self) -> int: ...

    def balance_of(self, account: str) -> int: ...

    def transfer(self, sender: str, to: str, amount: int) -> bool: ...

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool: ...

    def approve(self, owner: str, spender: str, amount: int) -> bool: ...


class ReceiptToken(Protocol):
    """Interest-bearing balance a lending market issues against deposits."""

    address: str

    def balance_of(self, account: str) -> int: ...


@dataclass(frozen=True)
class ReserveData:
    """The part of a lending market's reserve configuration the fund reads."""

    asset: str
    receipt_token: Optional[ReceiptToken]


class YieldVenue(Protocol):
    """A lending market accepting the fund's base asset."""

    address: str

    def supply(
        self, asset: str, amount: int, on_behalf_of: str, referral_code: int, caller: str
    ) -> None: ...

    def withdraw(self, asset: str, amount: int, to: str, caller: str) -> int: ...

    def get_reserve_data(self, asset: str) -> ReserveData: ...


@runtime_checkable
class Journaled(Protocol):
    """
    A collaborator whose state can be checkpointed and restored.

    The fund checkpoints every journaled collaborator before a mutating
    operation and rolls all of them back if the operation fails, so a
    failure halfway through a buy leaves no transfer behind.
    """

    def checkpoint(self) -> Any: ...

    def rollback(self, token: Any) -> None: ...
