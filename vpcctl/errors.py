"""
Error types raised by the ledger, plan and orchestrator.
"""

from typing import Iterable, Optional


class VpcctlError(Exception):
    """Base class for every error vpcctl reports to the operator."""


class ProviderCallFailed(VpcctlError):
    """A provider call for a step raised."""

    def __init__(self, step: str, cause: BaseException):
        self.step = step
        self.cause = cause
        super().__init__(f"{step}: provider call failed: {cause}")


class DependencyMissing(VpcctlError):
    """A step's dependency has no identifier in the ledger."""

    def __init__(self, step: str, missing: Iterable[str]):
        self.step = step
        self.missing = sorted(missing)
        super().__init__(
            f"{step}: ledger has no identifier for {', '.join(self.missing)} (ledger may be corrupted)"
        )


class ProvisioningTimeout(VpcctlError):
    """A created resource did not become ready within the polling bound."""

    def __init__(self, step: str, attempts: int):
        self.step = step
        self.attempts = attempts
        super().__init__(f"{step}: not ready after {attempts} checks (still tracked in ledger)")


class TeardownTimeout(VpcctlError):
    """A deleted resource was not confirmed gone within the polling bound."""

    def __init__(self, step: str, attempts: int):
        self.step = step
        self.attempts = attempts
        super().__init__(f"{step}: deletion not confirmed after {attempts} checks (still tracked in ledger)")


class NothingToDelete(VpcctlError):
    """Delete was invoked against a missing or empty ledger."""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        where = f" ({path})" if path else ""
        super().__init__(f"Resource ledger not found or empty{where}. Nothing to delete.")


class LedgerIOFailed(VpcctlError):
    """Reading or writing the ledger file failed."""

    def __init__(self, path: str, cause: BaseException):
        self.path = path
        self.cause = cause
        super().__init__(f"Ledger {path}: {cause}")


class LedgerLocked(VpcctlError):
    """Another run holds the ledger lock."""

    def __init__(self, lock_path: str):
        self.lock_path = lock_path
        super().__init__(
            f"Another vpcctl run is using this ledger (lock file {lock_path}). "
            "Remove the lock file if no run is active."
        )


class InvalidPlan(VpcctlError):
    """A plan declares a dependency that is unknown or not earlier in the order."""


class MetadataUnavailable(VpcctlError):
    """The instance metadata service could not be reached."""
