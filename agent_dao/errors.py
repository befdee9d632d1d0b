"""
Error Types
===========
Exceptions raised inside the DAO factory, and the structured result
returned across its public API.

Validation and state failures are reported as ActionResult values.
Remote failures end up in a DeploymentResult. Only FatalConfigError
escapes to the caller, and only at construction time.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .dao.types import DeploymentResult


class DAOFactoryError(Exception):
    """Base class for all DAO factory errors."""


class ValidationError(DAOFactoryError):
    """Malformed input (address, config, participant)."""


class InvalidConfigError(ValidationError):
    """DAO configuration override rejected by the validated merge."""


class StateError(DAOFactoryError):
    """Operation not allowed in the proposal's current status."""


class RemoteError(DAOFactoryError):
    """A Stacks API query or broadcast failed."""


class TransactionRejected(RemoteError):
    """The chain reported a definitive failure for a transaction."""

    def __init__(self, tx_id: str, detail: str):
        super().__init__(f"Transaction aborted: {detail}")
        self.tx_id = tx_id
        self.detail = detail


class ConfirmationTimeout(RemoteError):
    """A transaction was not confirmed within the retry budget."""

    def __init__(self, tx_id: str, attempts: int):
        super().__init__(f"Transaction {tx_id} not confirmed after {attempts} attempts")
        self.tx_id = tx_id
        self.attempts = attempts


class FatalConfigError(DAOFactoryError):
    """Required deployment credentials are missing."""


class FailureReason(Enum):
    """Why an API operation was refused."""
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    DUPLICATE = "duplicate"
    INVALID_ADDRESS = "invalid_address"
    ALREADY_DEPLOYED = "already_deployed"
    THRESHOLD_NOT_MET = "threshold_not_met"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    REMOTE_ERROR = "remote_error"
    DEPLOYMENT_FAILED = "deployment_failed"

    @property
    def category(self) -> str:
        """Error taxonomy bucket: validation, state or remote."""
        if self in (
            FailureReason.CAPACITY_EXCEEDED,
            FailureReason.DUPLICATE,
            FailureReason.INVALID_ADDRESS,
        ):
            return "validation"
        if self in (FailureReason.REMOTE_ERROR, FailureReason.DEPLOYMENT_FAILED):
            return "remote"
        return "state"


@dataclass
class ActionResult:
    """Outcome of a registry or factory operation."""
    success: bool
    message: str
    reason: Optional[FailureReason] = None
    deployment: Optional["DeploymentResult"] = None

    def __bool__(self) -> bool:
        return self.success


def fail(reason: FailureReason, message: str, deployment=None) -> ActionResult:
    """Build a failed ActionResult."""
    return ActionResult(
        success=False,
        message=message,
        reason=reason,
        deployment=deployment,
    )
