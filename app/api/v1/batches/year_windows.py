"""Academic year windows of a batch: ordering, non-overlap and the one-day gap between years."""

from typing import Iterable, Optional

from app.core.exceptions import ValidationError

from .schemas import YearWindowViolation


def _dated(year) -> bool:
    return year.start_date is not None and year.end_date is not None


def validate_year_windows(years: Iterable) -> Optional[YearWindowViolation]:
    """
    Return the first violation, or None when the windows are consistent.
    years: objects with year_no, start_date and end_date (BatchYear rows or BatchYearInput).
    For years i < j with both dates set, year i must end at least one day before year j starts.
    """
    ordered = sorted(years, key=lambda y: y.year_no)

    seen = set()
    for year in ordered:
        if year.year_no in seen:
            return YearWindowViolation(
                conflicting_years=[year.year_no],
                message=f"Year {year.year_no} appears more than once",
            )
        seen.add(year.year_no)
        if (year.start_date is None) != (year.end_date is None):
            return YearWindowViolation(
                conflicting_years=[year.year_no],
                message=f"Year {year.year_no}: Both start date and end date must be provided together",
            )
        if _dated(year) and year.end_date <= year.start_date:
            return YearWindowViolation(
                conflicting_years=[year.year_no],
                message=f"Year {year.year_no}: End date must be after start date",
            )

    dated = [y for y in ordered if _dated(y)]
    for i, earlier in enumerate(dated):
        for later in dated[i + 1:]:
            # dates: strictly before means at least one calendar day apart
            if not earlier.end_date < later.start_date:
                return YearWindowViolation(
                    conflicting_years=[earlier.year_no, later.year_no],
                    message=(
                        f"Year {earlier.year_no} must end at least one day before "
                        f"year {later.year_no} starts"
                    ),
                )
    return None


def check_year_windows(years: Iterable) -> None:
    """Raise ValidationError carrying the conflicting years when the windows are inconsistent."""
    violation = validate_year_windows(years)
    if violation:
        raise ValidationError(violation.message, detail={"conflicting_years": violation.conflicting_years})
