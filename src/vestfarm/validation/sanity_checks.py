"""Sanity checks on engine bookkeeping versus ledger custody."""

from dataclasses import dataclass
from typing import List, Optional

from ..engine.farm import YieldFarmEngine
from ..engine.vesting import VestingEngine


@dataclass
class ValidationWarning:
    """A validation warning with severity and message."""
    severity: str  # "warning" or "error"
    category: str  # "schedule", "custody", "stake" or "rewards"
    message: str
    details: Optional[str] = None


class InvariantChecker:
    """Check the accounting invariants of a vesting engine and a farm."""

    def __init__(self, vesting: Optional[VestingEngine] = None, farm: Optional[YieldFarmEngine] = None):
        """Initialize with the engines to inspect (either may be omitted)."""
        self.vesting = vesting
        self.farm = farm

    def check_vesting(self) -> List[ValidationWarning]:
        """
        Check schedules and vesting custody.

        Returns:
            List of validation warnings
        """
        warnings = []
        if self.vesting is None:
            return warnings

        for beneficiary, schedule in self.vesting.schedules().items():
            if schedule.amount_claimed > schedule.total_amount:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="schedule",
                    message=f"{beneficiary} claimed more than granted",
                    details=f"claimed={schedule.amount_claimed}, total={schedule.total_amount}"
                ))
            if schedule.amount_claimed < 0 or schedule.total_amount < 0:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="schedule",
                    message=f"Negative schedule amounts for {beneficiary}"
                ))

        committed = self.vesting.total_committed()
        custody = self.vesting.token.balance_of(self.vesting.address)
        if custody < committed:
            warnings.append(ValidationWarning(
                severity="error",
                category="custody",
                message="Vesting custody holds less than it owes",
                details=f"custody={custody}, committed={committed}, short={committed - custody}"
            ))
        return warnings

    def check_farm(self) -> List[ValidationWarning]:
        """
        Check stake records, staking custody and reward pool coverage.

        Returns:
            List of validation warnings
        """
        warnings = []
        if self.farm is None:
            return warnings

        stakes = self.farm.stakes()
        record_sum = sum(r.amount for r in stakes.values())
        if record_sum != self.farm.total_staked:
            warnings.append(ValidationWarning(
                severity="error",
                category="stake",
                message="total_staked disagrees with stake records",
                details=f"total_staked={self.farm.total_staked}, sum={record_sum}"
            ))

        for staker, record in stakes.items():
            if record.amount < 0:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="stake",
                    message=f"Negative stake for {staker}: {record.amount}"
                ))

        custody = self.farm.staking_token.balance_of(self.farm.address)
        if custody < self.farm.total_staked:
            warnings.append(ValidationWarning(
                severity="error",
                category="custody",
                message="Farm holds fewer staking tokens than staked",
                details=f"custody={custody}, total_staked={self.farm.total_staked}"
            ))

        # Underfunded pool is a liveness problem, not a bookkeeping error
        owed = sum(self.farm.pending(staker) for staker in stakes)
        pool = self.farm.reward_pool()
        if pool < owed:
            warnings.append(ValidationWarning(
                severity="warning",
                category="rewards",
                message="Reward pool cannot cover all pending rewards",
                details=f"pool={pool}, pending={owed}"
            ))
        return warnings

    def run_all_checks(self) -> List[ValidationWarning]:
        return self.check_vesting() + self.check_farm()


def validate_engines(
    vesting: Optional[VestingEngine] = None,
    farm: Optional[YieldFarmEngine] = None
) -> tuple[bool, List[ValidationWarning]]:
    """
    Run all invariant checks.

    Returns:
        (is_valid, warnings); is_valid is False if any warning is an error
    """
    warnings = InvariantChecker(vesting, farm).run_all_checks()
    is_valid = not any(w.severity == "error" for w in warnings)
    return is_valid, warnings
