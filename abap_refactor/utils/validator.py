"""Input validation — checks that the source code is a non-empty string before graph execution."""


def validate_source(source_code: str) -> str:
    """Validate that the source code is a non-empty string.

    Returns the source unchanged on success; whitespace is significant in code.
    Raises ValueError if input is empty or whitespace-only.
    """
    if not isinstance(source_code, str) or not source_code.strip():
        raise ValueError("Source code must be a non-empty string.")
    return source_code
