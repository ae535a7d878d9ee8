from datetime import date

import pytest

from app.api.v1.batches.schemas import BatchYearInput
from app.api.v1.batches.year_windows import check_year_windows, validate_year_windows
from app.core.exceptions import ValidationError


def _year(no, start=None, end=None) -> BatchYearInput:
    return BatchYearInput(year_no=no, start_date=start, end_date=end)


def test_consistent_windows_pass() -> None:
    years = [
        _year(1, date(2024, 7, 1), date(2025, 5, 31)),
        _year(2, date(2025, 6, 1), date(2026, 5, 31)),
        _year(3),
        _year(4, date(2027, 7, 1), date(2028, 5, 31)),
    ]
    assert validate_year_windows(years) is None
    check_year_windows(years)


def test_touching_years_conflict() -> None:
    years = [
        _year(1, date(2024, 7, 1), date(2025, 6, 30)),
        _year(2, date(2025, 6, 30), date(2026, 5, 31)),
    ]
    violation = validate_year_windows(years)
    assert violation is not None
    assert violation.conflicting_years == [1, 2]


def test_overlap_with_non_adjacent_year_is_reported() -> None:
    years = [
        _year(1, date(2024, 7, 1), date(2027, 8, 1)),
        _year(2),
        _year(3, date(2026, 7, 1), date(2027, 5, 31)),
    ]
    violation = validate_year_windows(years)
    assert violation.conflicting_years == [1, 3]


def test_input_order_does_not_matter() -> None:
    years = [
        _year(2, date(2024, 6, 1), date(2025, 5, 31)),
        _year(1, date(2024, 7, 1), date(2025, 5, 31)),
    ]
    assert validate_year_windows(years).conflicting_years == [1, 2]


def test_end_must_follow_start() -> None:
    violation = validate_year_windows([_year(1, date(2024, 7, 1), date(2024, 7, 1))])
    assert violation.conflicting_years == [1]


def test_dates_must_be_set_together() -> None:
    violation = validate_year_windows([_year(1, date(2024, 7, 1), None)])
    assert violation.conflicting_years == [1]
    assert "together" in violation.message


def test_duplicate_year_numbers() -> None:
    violation = validate_year_windows([_year(1), _year(1)])
    assert violation.conflicting_years == [1]


def test_check_raises_with_conflicting_pair() -> None:
    years = [
        _year(1, date(2024, 7, 1), date(2025, 7, 1)),
        _year(2, date(2025, 6, 1), date(2026, 5, 31)),
    ]
    with pytest.raises(ValidationError) as exc_info:
        check_year_windows(years)
    assert exc_info.value.detail == {"conflicting_years": [1, 2]}
    assert exc_info.value.status_code == 400
