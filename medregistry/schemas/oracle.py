"""
JSON schemas for the verification-oracle wire format.

The outbound job carries the caller-supplied customer id and pre-hashed PIN,
the `path` the oracle reads its boolean answer from, and the correlation
fields the oracle echoes back on fulfillment.
"""

ORACLE_JOB_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Verification check job",
    "type": "object",
    "required": ["requestId", "customerId", "hashedPin", "path", "callbackUrl"],
    "properties": {
        "requestId": {"type": "string", "minLength": 1},
        "customerId": {"type": "string", "minLength": 1},
        "hashedPin": {
            "type": "string",
            "pattern": "^[0-9a-f]{64}$",
            "description": "Hex SHA-256 digest of the PIN; the raw PIN never leaves the client.",
        },
        "path": {
            "type": "string",
            "const": "result",
            "description": "Field of the oracle's upstream response holding the boolean verdict.",
        },
        "callbackUrl": {"type": "string", "minLength": 1},
    },
    "additionalProperties": False,
}


ORACLE_RUN_RESPONSE_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Oracle job run acknowledgement",
    "type": "object",
    "required": ["data"],
    "properties": {
        "data": {
            "type": "object",
            "required": ["id"],
            "properties": {"id": {"type": "string", "minLength": 1}},
        },
    },
}
