"""
Step Mutation Engine - Declarative step edits reduced to one overwrite.

The remote service only accepts a full step list (OVERWRITE), so every edit
mode is computed client-side into a canonical list:

- REPLACE: the given steps, re-indexed 1..N in the order given
- APPEND: current steps followed by the new ones, continuing the numbering
- UPDATE: current steps with only the supplied fields overlaid
- DELETE: current steps minus the named indexes, re-indexed 1..N

The canonical list is always dense, 1-based and fully specified.
"""

import logging
from typing import Dict, List, Optional, Sequence

from zephyr_scale_mcp.domain.entities.query import StepFragment, StepMode, StepOperation
from zephyr_scale_mcp.domain.entities.test_case import StepDTO
from zephyr_scale_mcp.exceptions import StepIndexError, StepValidationError

logger = logging.getLogger(__name__)

# Zephyr Scale rejects bulk step writes above this size.
MAX_STEPS_PER_WRITE = 100

_READS_CURRENT = {StepMode.APPEND, StepMode.UPDATE, StepMode.DELETE}

_REQUIRED_FIELDS = (("description", "description"), ("expected_result", "expectedResult"))


def requires_current_steps(mode: StepMode) -> bool:
    """Whether ``mode`` needs the current step list."""
    return StepMode(mode) in _READS_CURRENT


def reindex(steps: Sequence[StepDTO]) -> List[StepDTO]:
    """Return copies of ``steps`` numbered 1..N in their current order."""
    return [
        StepDTO(
            index=position,
            description=step.description,
            test_data=step.test_data or "",
            expected_result=step.expected_result or "",
        )
        for position, step in enumerate(steps, start=1)
    ]


class StepMutationEngine:
    """
    Computes the canonical step list for a step operation.

    Args:
        validate_steps: When True, fragments referencing missing indexes and
            steps left without description/expected result are rejected.
            When False, unknown indexes are skipped and missing text
            defaults to an empty string.
    """

    def __init__(self, validate_steps: bool = True):
        self.validate_steps = validate_steps

    def apply(
        self,
        operation: StepOperation,
        current_steps: Optional[Sequence[StepDTO]] = None,
    ) -> List[StepDTO]:
        """Apply ``operation`` to ``current_steps`` and return the canonical list."""
        mode = StepMode(operation.mode)
        current = reindex(current_steps or [])

        if mode is StepMode.REPLACE:
            result = self._build_new(operation.steps, start=1)
        elif mode is StepMode.APPEND:
            result = current + self._build_new(operation.steps, start=len(current) + 1)
        elif mode is StepMode.UPDATE:
            result = self._update(current, operation.steps)
        else:
            result = self._delete(current, operation.delete_indexes)

        self._check_write_size(result)
        logger.debug(
            "%s produced %d steps from %d current", mode.value, len(result), len(current)
        )
        return result

    def _build_new(self, fragments: Sequence[StepFragment], start: int) -> List[StepDTO]:
        steps = []
        for offset, fragment in enumerate(fragments):
            if self.validate_steps:
                for attr, name in _REQUIRED_FIELDS:
                    if not getattr(fragment, attr):
                        raise StepValidationError(f"steps[{offset}].{name}", "must not be empty")
            steps.append(
                StepDTO(
                    index=start + offset,
                    description=fragment.description or "",
                    test_data=fragment.test_data or "",
                    expected_result=fragment.expected_result or "",
                )
            )
        return steps

    def _update(
        self, current: List[StepDTO], fragments: Sequence[StepFragment]
    ) -> List[StepDTO]:
        by_index: Dict[int, StepDTO] = {step.index: step for step in current}

        missing = [f.index for f in fragments if f.index not in by_index]
        if missing and self.validate_steps:
            invalid = [i for i in missing if i is not None]
            raise StepIndexError(StepMode.UPDATE.value, invalid, len(current))
        if missing:
            logger.warning("Skipping updates for unknown step indexes %s", missing)

        for position, fragment in enumerate(fragments):
            existing = by_index.get(fragment.index)  # type: ignore[arg-type]
            if existing is None:
                continue
            updated = StepDTO(
                index=existing.index,
                description=_overlay(fragment.description, existing.description),
                test_data=_overlay(fragment.test_data, existing.test_data),
                expected_result=_overlay(fragment.expected_result, existing.expected_result),
            )
            if self.validate_steps:
                for attr, name in _REQUIRED_FIELDS:
                    if not getattr(updated, attr):
                        raise StepValidationError(f"steps[{position}].{name}", "must not be empty")
            by_index[existing.index] = updated

        return [by_index[step.index] for step in current]

    def _delete(self, current: List[StepDTO], delete_indexes: Sequence[int]) -> List[StepDTO]:
        to_delete = set(delete_indexes)
        existing = {step.index for step in current}

        missing = to_delete - existing
        if missing and self.validate_steps:
            raise StepIndexError(StepMode.DELETE.value, missing, len(current))
        if missing:
            logger.warning("Ignoring deletes for unknown step indexes %s", sorted(missing))

        return reindex([step for step in current if step.index not in to_delete])

    @staticmethod
    def _check_write_size(steps: List[StepDTO]) -> None:
        if len(steps) > MAX_STEPS_PER_WRITE:
            raise StepValidationError(
                "steps",
                f"{len(steps)} steps exceeds the Zephyr Scale limit of {MAX_STEPS_PER_WRITE}",
            )


def _overlay(new: Optional[str], old: str) -> str:
    return old if new is None else new
