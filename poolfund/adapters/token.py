"""
In-memory fungible token.

Balances and allowances in plain dicts, with the same success/failure
contract as an on-chain token: transfers that cannot be honoured return
``False`` instead of raising, and callers are expected to check.

Supports checkpoint / rollback so a fund can undo every transfer of an
operation that failed halfway, and transfer hooks so tests can simulate a
token that calls back into the fund while a transfer is in flight.
"""

import logging
from typing import Callable, Dict, List, Set, Tuple

logger = logging.getLogger(__name__)

MAX_ALLOWANCE = 2**256 - 1

TransferHook = Callable[[str, str, int], None]


class InMemoryToken:
    """Token ledger for the sandbox deployment and the test suite."""

    def __init__(self, address: str, symbol: str, decimals: int):
        self.address = address
        self.symbol = symbol
        self._decimals = decimals
        self._balances: Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}
        self._total_supply = 0
        self._hooks: List[TransferHook] = []
        self.frozen: Set[str] = set()

    def __repr__(self) -> str:
        return f"<InMemoryToken {self.symbol} at {self.address}>"

    # ── Reads ──

    def decimals(self) -> int:
        return self._decimals

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def total_supply(self) -> int:
        return self._total_supply

    def accounts(self) -> Dict[str, int]:
        return {account: bal for account, bal in self._balances.items() if bal}

    # ── Transfers ──

    def add_transfer_hook(self, hook: TransferHook) -> None:
        """Call ``hook(sender, to, amount)`` after every successful transfer."""
        self._hooks.append(hook)

    def _move(self, sender: str, to: str, amount: int) -> bool:
        if amount < 0 or sender in self.frozen or to in self.frozen:
            return False
        if self.balance_of(sender) < amount:
            return False
        self._balances[sender] = self.balance_of(sender) - amount
        self._balances[to] = self.balance_of(to) + amount
        for hook in list(self._hooks):
            hook(sender, to, amount)
        return True

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        return self._move(sender, to, amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            logger.debug(
                "%s transfer_from refused: allowance %d < %d", self.symbol, allowed, amount
            )
            return False
        if not self._move(owner, to, amount):
            return False
        if allowed != MAX_ALLOWANCE:
            self._allowances[(owner, spender)] = allowed - amount
        return True

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        if amount < 0:
            return False
        self._allowances[(owner, spender)] = amount
        return True

    # ── Supply management ──

    def mint(self, to: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"cannot mint a negative amount: {amount}")
        self._balances[to] = self.balance_of(to) + amount
        self._total_supply += amount

    def burn(self, account: str, amount: int) -> None:
        if not 0 <= amount <= self.balance_of(account):
            raise ValueError(f"cannot burn {amount} from {account}")
        self._balances[account] = self.balance_of(account) - amount
        self._total_supply -= amount

    # ── Journaling ──

    def checkpoint(self) -> tuple:
        return dict(self._balances), dict(self._allowances), self._total_supply

    def rollback(self, token: tuple) -> None:
        balances, allowances, total_supply = token
        self._balances = dict(balances)
        self._allowances = dict(allowances)
        self._total_supply = total_supply
