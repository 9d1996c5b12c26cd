"""Domain errors for pgprovisioner."""

from enum import Enum
from typing import Optional


class RetriableClassification(str, Enum):
    RETRIABLE = "retriable"
    TERMINAL = "terminal"
    UNCLASSIFIED = "unclassified"


class ProvisionerError(RuntimeError):
    """Raised when provisioning or restore cannot continue safely."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class ValidationError(ProvisionerError):
    """A precondition was violated before anything was mutated."""


class ExecutionError(ProvisionerError):
    """An external program failed. ``output`` holds what it printed."""

    def __init__(self, message: str, output: str = "", stage: Optional[str] = None):
        super().__init__(message, stage=stage)
        self.output = output


class ConfigurationError(ProvisionerError):
    """A SQL statement failed while configuring the transient instance."""


class RestoreError(ProvisionerError):
    """Remote restore failure tagged with whether a new attempt may succeed."""

    def __init__(
        self,
        message: str,
        classification: RetriableClassification = RetriableClassification.UNCLASSIFIED,
        exit_code: Optional[int] = None,
        stage: Optional[str] = None,
    ):
        super().__init__(message, stage=stage)
        self.classification = classification
        self.exit_code = exit_code

    def is_retriable(self) -> bool:
        return self.classification is RetriableClassification.RETRIABLE


class OperationCancelled(ProvisionerError):
    """Raised when an external cancellation signal interrupts the command."""
