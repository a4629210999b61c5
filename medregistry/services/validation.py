"""
JSON Schema validation service.

Used at the oracle boundary: the job we submit and the acknowledgement the
oracle node returns are both checked, collecting every error rather than
stopping at the first.
"""

from typing import Any

import jsonschema


def validate_against_schema(data: dict[str, Any], schema: dict[str, Any]) -> list[str]:
    """
    Validate a dict against a JSON schema.
    Returns a list of error messages (empty list = valid).
    """
    validator = jsonschema.Draft7Validator(schema)
    return [error.message for error in validator.iter_errors(data)]
