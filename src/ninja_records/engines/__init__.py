"""Storage engines that implement the Collection protocol."""


def _validate_count(name: str, count: int) -> int:
    """Validate a ``skip`` or ``limit`` argument.

    Raises ``ValueError`` for negative values and anything that is not an
    integer (booleans included).
    """
    if isinstance(count, bool) or not isinstance(count, int):
        raise ValueError(f"{name} must be an integer, got {count!r}")
    if count < 0:
        raise ValueError(f"{name} must be >= 0, got {count}")
    return count
