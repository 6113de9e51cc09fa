"""Tests for the step mutation engine."""

import pytest

from zephyr_scale_mcp.domain.entities.query import StepFragment, StepMode, StepOperation
from zephyr_scale_mcp.domain.entities.test_case import StepDTO
from zephyr_scale_mcp.engine.step_mutation import (
    MAX_STEPS_PER_WRITE,
    StepMutationEngine,
    requires_current_steps,
)
from zephyr_scale_mcp.exceptions import StepIndexError, StepValidationError


@pytest.fixture
def current_steps():
    return [
        StepDTO(1, "A", "", "x"),
        StepDTO(2, "B", "", "y"),
        StepDTO(3, "C", "", "z"),
    ]


@pytest.fixture
def engine():
    return StepMutationEngine()


def _as_tuples(steps):
    return [(s.index, s.description, s.test_data, s.expected_result) for s in steps]


class TestReplace:
    """REPLACE mode."""

    def test_replace_reindexes_in_given_order(self, engine, current_steps):
        op = StepOperation(
            StepMode.REPLACE,
            steps=[
                StepFragment(index=7, description="N1", expected_result="r1"),
                StepFragment(index=2, description="N2", test_data="d", expected_result="r2"),
            ],
        )

        assert _as_tuples(engine.apply(op, current_steps)) == [
            (1, "N1", "", "r1"),
            (2, "N2", "d", "r2"),
        ]

    def test_replace_does_not_need_current_steps(self):
        assert requires_current_steps(StepMode.REPLACE) is False

    def test_replace_with_empty_list_clears_steps(self, engine, current_steps):
        assert engine.apply(StepOperation(StepMode.REPLACE), current_steps) == []

    def test_missing_expected_result_rejected(self, engine):
        op = StepOperation(StepMode.REPLACE, steps=[StepFragment(description="N1")])

        with pytest.raises(StepValidationError) as exc_info:
            engine.apply(op)
        assert exc_info.value.field == "steps[0].expectedResult"

    def test_missing_fields_allowed_without_validation(self):
        op = StepOperation(StepMode.REPLACE, steps=[StepFragment(description="N1")])
        steps = StepMutationEngine(validate_steps=False).apply(op)
        assert _as_tuples(steps) == [(1, "N1", "", "")]

    def test_write_limit(self, engine):
        op = StepOperation(
            StepMode.REPLACE,
            steps=[
                StepFragment(description=f"s{i}", expected_result="ok")
                for i in range(MAX_STEPS_PER_WRITE + 1)
            ],
        )
        with pytest.raises(StepValidationError):
            engine.apply(op)


class TestAppend:
    """APPEND mode."""

    def test_append_continues_numbering(self, engine, current_steps):
        op = StepOperation(
            StepMode.APPEND,
            steps=[
                StepFragment(index=1, description="D", expected_result="w"),
                StepFragment(index=1, description="E", expected_result="v"),
            ],
        )

        result = engine.apply(op, current_steps)

        assert [s.index for s in result] == [1, 2, 3, 4, 5]
        assert _as_tuples(result[3:]) == [(4, "D", "", "w"), (5, "E", "", "v")]


class TestUpdate:
    """UPDATE mode."""

    def test_only_named_fields_change(self, engine, current_steps):
        op = StepOperation(
            StepMode.UPDATE, steps=[StepFragment(index=2, expected_result="changed")]
        )

        assert _as_tuples(engine.apply(op, current_steps)) == [
            (1, "A", "", "x"),
            (2, "B", "", "changed"),
            (3, "C", "", "z"),
        ]

    def test_clearing_required_field_rejected(self, engine, current_steps):
        op = StepOperation(
            StepMode.UPDATE,
            steps=[
                StepFragment(index=2, description="B2"),
                StepFragment(index=1, expected_result=""),
            ],
        )

        with pytest.raises(StepValidationError) as exc_info:
            engine.apply(op, current_steps)
        assert exc_info.value.field == "steps[1].expectedResult"

    def test_test_data_may_be_cleared(self, engine, current_steps):
        current = [StepDTO(1, "A", "user=admin", "x")] + current_steps[1:]
        op = StepOperation(StepMode.UPDATE, steps=[StepFragment(index=1, test_data="")])
        assert _as_tuples(engine.apply(op, current))[0] == (1, "A", "", "x")

    def test_empty_string_is_a_value_without_validation(self, current_steps):
        op = StepOperation(StepMode.UPDATE, steps=[StepFragment(index=1, description="")])
        result = StepMutationEngine(validate_steps=False).apply(op, current_steps)
        assert result[0].description == ""

    def test_unknown_index_rejected(self, engine, current_steps):
        op = StepOperation(StepMode.UPDATE, steps=[StepFragment(index=5, description="Q")])

        with pytest.raises(StepIndexError) as exc_info:
            engine.apply(op, current_steps)
        assert exc_info.value.invalid_indexes == [5]
        assert exc_info.value.step_count == 3

    def test_unknown_index_skipped_without_validation(self, current_steps):
        op = StepOperation(
            StepMode.UPDATE,
            steps=[StepFragment(index=5, description="Q"), StepFragment(index=1, description="Z")],
        )
        result = StepMutationEngine(validate_steps=False).apply(op, current_steps)
        assert _as_tuples(result)[0] == (1, "Z", "", "x")
        assert len(result) == 3


class TestDelete:
    """DELETE mode."""

    def test_delete_middle_step(self, engine, current_steps):
        op = StepOperation(StepMode.DELETE, delete_indexes=[2])

        assert _as_tuples(engine.apply(op, current_steps)) == [
            (1, "A", "", "x"),
            (2, "C", "", "z"),
        ]

    def test_delete_yields_dense_indexes(self, engine, current_steps):
        op = StepOperation(StepMode.DELETE, delete_indexes=[1, 3])
        result = engine.apply(op, current_steps)
        assert [s.index for s in result] == [1]
        assert result[0].description == "B"

    def test_delete_unknown_index_rejected(self, engine, current_steps):
        with pytest.raises(StepIndexError) as exc_info:
            engine.apply(StepOperation(StepMode.DELETE, delete_indexes=[2, 9]), current_steps)
        assert exc_info.value.invalid_indexes == [9]

    def test_input_not_mutated(self, engine, current_steps):
        engine.apply(StepOperation(StepMode.DELETE, delete_indexes=[1]), current_steps)
        assert [s.description for s in current_steps] == ["A", "B", "C"]
