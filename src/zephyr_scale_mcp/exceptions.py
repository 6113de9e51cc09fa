"""Exception classes raised inside the engine and configuration layers.

Services catch these and turn them into ``DomainResult`` failures, so they
never reach the MCP tool layer directly.

Example usage:
    try:
        steps = engine.apply(operation, current_steps)
    except StepIndexError as e:
        return DomainError.business_rule_violation("step_index", str(e))
"""

from typing import Iterable, List


class ZephyrMCPError(Exception):
    """Base exception for zephyr-scale-mcp errors."""


class ConfigurationError(ZephyrMCPError):
    """Raised when required settings are missing or invalid.

    Attributes:
        setting: Name of the offending setting (e.g. "ZEPHYR_API_TOKEN")
    """

    def __init__(self, setting: str, message: str):
        self.setting = setting
        super().__init__(f"{setting}: {message}")


class RequestValidationError(ZephyrMCPError):
    """Raised by the request parser for a malformed tool request.

    Attributes:
        field: Dotted path of the offending field (e.g. "filters.status")
        reason: Why the value was rejected
    """

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class StepMutationError(ZephyrMCPError):
    """Base exception for step edits that cannot be applied."""


class StepIndexError(StepMutationError):
    """Raised when a step edit references indexes the test case does not have.

    Attributes:
        mode: The step edit mode (UPDATE or DELETE)
        invalid_indexes: Requested indexes with no existing step
        step_count: Number of existing steps

    Example:
        >>> raise StepIndexError("UPDATE", [5], 3)
        >>> # str(error) -> "UPDATE references step indexes [5] but the test case has 3 steps"
    """

    def __init__(self, mode: str, invalid_indexes: Iterable[int], step_count: int):
        self.mode = mode
        self.invalid_indexes: List[int] = sorted(set(invalid_indexes))
        self.step_count = step_count
        super().__init__(
            f"{mode} references step indexes {self.invalid_indexes} "
            f"but the test case has {step_count} steps"
        )


class StepValidationError(StepMutationError):
    """Raised when a step list cannot be written as given.

    Attributes:
        field: Field path of the offending value (e.g. "steps[1].expectedResult")
    """

    def __init__(self, field: str, message: str):
        self.field = field
        self.reason = message
        super().__init__(f"{field}: {message}")
