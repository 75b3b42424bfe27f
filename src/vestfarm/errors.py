"""Error taxonomy for the vesting and yield-farm engines.

Every engine operation is all-or-nothing: when one of these is raised the
engine state is exactly what it was before the call.
"""


class VestFarmError(Exception):
    """Base class for all engine errors."""


class Unauthorized(VestFarmError):
    """Caller lacks the owner/admin role required by the operation."""

    def __init__(self, caller: str, role: str = "owner"):
        super().__init__(f"{caller} is not the {role}")
        self.caller = caller
        self.role = role


class NotWhitelisted(VestFarmError):
    """Beneficiary is not on the vesting whitelist."""


class ScheduleExists(VestFarmError):
    """Beneficiary already has a vesting schedule (revoked or not)."""


class NoSchedule(VestFarmError):
    """Beneficiary has no vesting schedule."""


class InvalidSchedule(VestFarmError, ValueError):
    """Schedule parameters are out of range."""


class NoVestedTokens(VestFarmError):
    """Nothing is claimable: still in cliff, fully claimed, or no schedule."""


class AlreadyRevoked(VestFarmError):
    """Schedule was revoked before."""


class ZeroAmount(VestFarmError, ValueError):
    """Amount must be greater than zero."""


class InsufficientStake(VestFarmError):
    """Withdrawal exceeds the staked balance."""


class TransferFailed(VestFarmError):
    """The token ledger refused a transfer; the whole operation is rolled back."""

    def __init__(self, token: str, source: str, recipient: str, amount: int):
        super().__init__(
            f"{token} transfer of {amount} from {source} to {recipient} failed"
        )
        self.token = token
        self.source = source
        self.recipient = recipient
        self.amount = amount


class EnginePaused(VestFarmError):
    """Engine is paused; only owner/admin operations are accepted."""


class ClockError(VestFarmError):
    """Clock moved backwards or returned a non-integer timestamp."""


class ConfigError(VestFarmError, ValueError):
    """Configuration or scenario file is invalid."""
