"""Token Ledger collaborator - an in-memory ERC20-shaped balance book.

Transfers signal failure by returning False rather than raising, the same
contract ERC20 `transfer`/`transferFrom` expose; engines turn a False into
`TransferFailed` and abort the calling operation.
"""

import logging
from collections import defaultdict
from typing import Dict

from ..units import MAX_UINT256, format_units

logger = logging.getLogger(__name__)


class TokenLedger:
    """Balances and allowances for one token."""

    def __init__(self, symbol: str, decimals: int = 18):
        """
        Initialize an empty ledger.

        Args:
            symbol: Token symbol used in logs and errors
            decimals: Display decimals (accounting is always in base units)
        """
        self.symbol = symbol
        self.decimals = decimals
        self.total_supply = 0
        self._balances: Dict[str, int] = defaultdict(int)
        self._allowances: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))

    def __repr__(self) -> str:
        return f"TokenLedger({self.symbol!r}, supply={self.total_supply})"

    @staticmethod
    def _check_amount(amount: int):
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise TypeError(f"Token amounts must be int, got {type(amount).__name__}")
        if amount < 0:
            raise ValueError(f"Token amounts cannot be negative: {amount}")

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    def balances(self) -> Dict[str, int]:
        """Snapshot of all non-zero balances."""
        return {addr: bal for addr, bal in self._balances.items() if bal}

    def allowance(self, owner: str, spender: str) -> int:
        if owner not in self._allowances:
            return 0
        return self._allowances[owner].get(spender, 0)

    def mint(self, to: str, amount: int):
        """Create `amount` new tokens for `to`."""
        self._check_amount(amount)
        self._balances[to] += amount
        self.total_supply += amount
        logger.debug("Minted %s %s to %s", format_units(amount, self.decimals), self.symbol, to)

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        """Set `spender`'s allowance over `owner`'s tokens."""
        self._check_amount(amount)
        self._allowances[owner][spender] = amount
        return True

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """Move tokens owned by `sender`. Returns False if the balance is short."""
        self._check_amount(amount)
        if self.balance_of(sender) < amount:
            logger.debug(
                "%s transfer refused: %s holds %d, needs %d",
                self.symbol, sender, self.balance_of(sender), amount
            )
            return False
        self._balances[sender] -= amount
        self._balances[recipient] += amount
        return True

    def transfer_from(self, spender: str, owner: str, recipient: str, amount: int) -> bool:
        """
        Move `owner`'s tokens on behalf of `spender`.

        Consumes allowance unless it is MAX_UINT256. Returns False if either
        the allowance or the balance is short; nothing changes in that case.
        """
        self._check_amount(amount)
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            logger.debug(
                "%s transferFrom refused: %s allowed %s only %d of %d",
                self.symbol, owner, spender, allowed, amount
            )
            return False
        if not self.transfer(owner, recipient, amount):
            return False
        if allowed != MAX_UINT256:
            self._allowances[owner][spender] = allowed - amount
        return True
