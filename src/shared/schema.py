"""JSON Schema validation utilities."""

from typing import Any

from jsonschema import Draft7Validator


def check_arguments(
    data: Any,
    schema: dict[str, Any]
) -> tuple[bool, list[str], list[str]]:
    """
    Validate tool arguments and report which fields are at fault.

    Args:
        data: Argument mapping to validate
        schema: JSON Schema of the tool input

    Returns:
        Tuple of (is_valid, offending field names, error messages)
    """
    if not schema:
        return True, [], []

    validator = Draft7Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))

    if not errors:
        return True, [], []

    fields: list[str] = []
    messages: list[str] = []
    for error in errors:
        if error.path:
            names = [str(error.path[0])]
            messages.append(f"{'.'.join(str(p) for p in error.path)}: {error.message}")
        elif error.validator == "required" and isinstance(data, dict):
            names = [name for name in error.validator_value if name not in data]
            messages.append(error.message)
        else:
            names = ["<arguments>"]
            messages.append(error.message)

        for name in names:
            if name not in fields:
                fields.append(name)

    return False, fields, messages
