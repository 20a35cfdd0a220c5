from typing import Any, Iterable, List, Optional

from .errors import InvalidQueryError

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
# Elasticsearch default index.max_result_window
MAX_RESULT_WINDOW = 10_000


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def validate_pagination(limit: Any, offset: Any, max_page_size: int = MAX_PAGE_SIZE) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    """
    errors: List[str] = []

    if not _is_int(limit):
        errors.append("Field 'limit' must be an integer")
    elif limit <= 0:
        errors.append("Field 'limit' must be positive")
    elif limit > max_page_size:
        errors.append(f"Field 'limit' must not exceed {max_page_size}")

    if not _is_int(offset):
        errors.append("Field 'offset' must be an integer")
    elif offset < 0:
        errors.append("Field 'offset' must not be negative")

    return errors


def validate_skills(skills: Any) -> List[str]:
    errors: List[str] = []
    if isinstance(skills, str) or not isinstance(skills, Iterable):
        errors.append("Field 'skills' must be a collection of strings")
        return errors
    for skill in skills:
        if not isinstance(skill, str):
            errors.append(f"Skill label {skill!r} must be a string")
    return errors


def validate_salary_bounds(floor: Optional[int], ceiling: Optional[int]) -> List[str]:
    errors: List[str] = []
    for name, value in (("salary_min", floor), ("salary_max", ceiling)):
        if value is None:
            continue
        if not _is_int(value):
            errors.append(f"Field '{name}' must be an integer")
        elif value < 0:
            errors.append(f"Field '{name}' must not be negative")
    if not errors and floor and ceiling and floor > ceiling:
        errors.append("Field 'salary_min' must not exceed 'salary_max'")
    return errors


def require_valid(errors: List[str]) -> None:
    """Raise InvalidQueryError carrying every message if any were collected."""
    if errors:
        raise InvalidQueryError("; ".join(errors))
