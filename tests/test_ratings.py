from __future__ import annotations

import math

import pytest

from apps.api.services.catalog import average_grade, validate_grade
from apps.api.services.errors import ValidationError


@pytest.mark.parametrize("grade", [-1, 5.5, "3", 6, True, None, math.nan, math.inf, [4]])
def test_validate_grade_rejects_invalid_values(grade: object) -> None:
    with pytest.raises(ValidationError):
        validate_grade(grade)


@pytest.mark.parametrize(("grade", "expected"), [(0, 0), (5, 5), (3, 3), (4.0, 4)])
def test_validate_grade_accepts_whole_numbers_in_range(grade: object, expected: int) -> None:
    value = validate_grade(grade)
    assert value == expected
    assert isinstance(value, int)


def test_average_grade_rounds_half_up_to_one_decimal() -> None:
    assert average_grade([2, 2, 2, 3]) == 2.3
    assert average_grade([3, 4]) == 3.5
    assert average_grade([1, 2, 2]) == 1.7
    assert average_grade([4]) == 4.0


def test_average_grade_without_ratings_is_none() -> None:
    assert average_grade([]) is None
