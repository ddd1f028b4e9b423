"""
Error types for the JSON:API store.

This module defines all exception types raised by the store:
- StoreError: Base exception
- ValidationError: Local validation failed before a request was made
- ServerError: Server answered a read with a non-success status
- TransportError: The transport collaborator failed at the network level
- InputError: Caller handed the store or codec something it cannot use
- UnknownTypeError: A resource type has no schema entry
- SchemaError: Invalid attribute or relationship declaration

Invariants:
    - All errors inherit from StoreError
    - ServerError is only raised by read paths; save/destroy record the
      status on the record instead
    - Decoding an unknown resource type never raises
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional


class StoreError(Exception):
    """Base exception for all store errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "STORE_ERROR"
        self.details = details or {}


class ValidationError(StoreError):
    """Record validation failed.

    The message is the JSON serialization of the record's ``errors`` map,
    so it can be shown or parsed without access to the record.

    Attributes:
        errors: attribute name -> list of ``{"key", "message"}`` entries
    """

    def __init__(self, errors: Dict[str, List[Dict[str, str]]]) -> None:
        super().__init__(
            json.dumps(errors, default=str),
            code="VALIDATION_ERROR",
            details={"errors": errors},
        )
        self.errors = errors


class ServerError(StoreError):
    """Server answered with an unexpected status.

    Raised when:
    - find_one/find_all receive a non-200 response
    """

    def __init__(self, message: str, status: int, url: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="SERVER_ERROR",
            details={"status": status, "url": url},
        )
        self.status = status
        self.url = url


class TransportError(StoreError):
    """Request never produced a response.

    Raised when:
    - Server is unreachable
    - Connection or read times out
    """

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="TRANSPORT_ERROR",
            details={"url": url},
        )
        self.url = url


class InputError(StoreError):
    """Invalid input handed to the store or codec.

    Raised when:
    - Encoding a None primary resource
    - Linking a record whose type is not a declared relationship target
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INPUT_ERROR")


class UnknownTypeError(StoreError):
    """Resource type has no schema entry.

    Attributes:
        type_name: The unknown resource type
        suggestions: Similar declared types
    """

    def __init__(
        self,
        type_name: str,
        suggestions: Optional[List[str]] = None,
    ) -> None:
        suggestions = suggestions or []
        msg = f"Unknown resource type '{type_name}'"
        if suggestions:
            msg += f". Did you mean: {', '.join(suggestions)}?"

        super().__init__(
            msg,
            code="UNKNOWN_TYPE",
            details={"type_name": type_name, "suggestions": suggestions},
        )
        self.type_name = type_name
        self.suggestions = suggestions


class SchemaError(StoreError):
    """Invalid schema declaration.

    Raised when:
    - ``id`` is declared as an attribute
    - A type or property name is empty
    - A relationship has no target type
    """

    def __init__(self, message: str, type_name: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="SCHEMA_ERROR",
            details={"type_name": type_name},
        )
        self.type_name = type_name
