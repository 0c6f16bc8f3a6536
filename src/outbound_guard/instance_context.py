"""
Instance Context Validation
===========================

Per-instance API connection settings (URL, key, timeout, retries) supplied
by callers at runtime, e.g. in a multi-tenant deployment. The API URL is
checked eagerly with the synchronous, DNS-free guard under api_mode; the
request-time guard still runs before every call.

Usage:
    from outbound_guard.instance_context import InstanceContext, validate_instance_context

    ctx = InstanceContext(api_url="https://api.example.com", api_key="k-123")
    result = validate_instance_context(ctx)
    if not result.valid:
        raise ValueError("; ".join(result.errors))
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict

from .config import get_guard_config
from .models import SecurityMode
from .url_security import validate_url_sync

# Substrings that mark an API key as a copy-pasted placeholder
API_KEY_PLACEHOLDERS = ("your_api_key", "placeholder", "example")


class InstanceContext(BaseModel):
    """
    API connection settings for one instance/session. All fields optional.

    Fields accept any value so that validate_instance_context() can report
    every wrong-typed field as a message instead of failing on the first.
    """

    model_config = ConfigDict(extra="ignore")

    api_url: Any = None
    api_key: Any = None
    api_timeout: Any = None
    api_max_retries: Any = None
    instance_id: Any = None
    session_id: Any = None
    metadata: Any = None


@dataclass
class ContextValidationResult:
    """Result of validate_instance_context()."""

    valid: bool
    errors: list[str] = field(default_factory=list)


def is_valid_api_key(key: str) -> bool:
    """Return True if key is non-empty and not a known placeholder."""
    lowered = key.lower()
    return len(key) > 0 and not any(p in lowered for p in API_KEY_PLACEHOLDERS)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _api_key_error(key: str) -> str:
    lowered = key.lower()
    if "your_api_key" in lowered:
        return (
            "Invalid api_key: contains placeholder 'your_api_key' - "
            "Please provide actual API key"
        )
    if "placeholder" in lowered:
        return "Invalid api_key: contains placeholder text - Please provide actual API key"
    if "example" in lowered:
        return "Invalid api_key: contains example text - Please provide actual API key"
    return "Invalid api_key: format validation failed - Ensure key is valid"


def validate_instance_context(
    context: InstanceContext | Mapping[str, Any],
    mode: SecurityMode | str | None = None,
) -> ContextValidationResult:
    """
    Validate instance settings and collect every problem found.

    Args:
        context: InstanceContext or a plain mapping of its fields
        mode: Security mode for the API URL check (default: config.api_mode)

    Returns:
        ContextValidationResult with all errors (empty when valid)
    """
    if not isinstance(context, InstanceContext):
        context = InstanceContext.model_validate(dict(context))
    security_mode = (
        SecurityMode.parse(mode) if mode is not None else get_guard_config().api_mode
    )
    errors: list[str] = []

    if context.api_url is not None:
        if context.api_url == "":
            errors.append(
                "Invalid api_url: empty string - URL is required when field is provided"
            )
        elif not isinstance(context.api_url, str):
            errors.append("Invalid api_url: Invalid URL format")
        else:
            validation = validate_url_sync(context.api_url, security_mode)
            if not validation.valid:
                errors.append(f"Invalid api_url: {validation.reason or 'Invalid URL'}")

    if context.api_key is not None:
        if context.api_key == "":
            errors.append(
                "Invalid api_key: empty string - API key is required when field is provided"
            )
        elif not isinstance(context.api_key, str):
            errors.append("Invalid api_key: must be a string")
        elif not is_valid_api_key(context.api_key):
            errors.append(_api_key_error(context.api_key))

    timeout = context.api_timeout
    if timeout is not None:
        if not _is_number(timeout):
            errors.append(
                f"Invalid api_timeout: {timeout} - Must be a number, "
                f"got {type(timeout).__name__}"
            )
        elif not math.isfinite(timeout):
            errors.append(
                f"Invalid api_timeout: {timeout} - Must be a finite number "
                "(not Infinity or NaN)"
            )
        elif timeout <= 0:
            errors.append(
                f"Invalid api_timeout: {timeout} - Must be positive (greater than 0)"
            )

    retries = context.api_max_retries
    if retries is not None:
        if not _is_number(retries):
            errors.append(
                f"Invalid api_max_retries: {retries} - Must be a number, "
                f"got {type(retries).__name__}"
            )
        elif not math.isfinite(retries):
            errors.append(
                f"Invalid api_max_retries: {retries} - Must be a finite number "
                "(not Infinity or NaN)"
            )
        elif retries < 0:
            errors.append(
                f"Invalid api_max_retries: {retries} - Must be non-negative (0 or greater)"
            )

    return ContextValidationResult(valid=not errors, errors=errors)


def is_instance_context(obj: Any) -> bool:
    """
    Structural check: does obj look like a usable instance context?

    The API URL is judged in permissive mode here; the configured api_mode
    applies in validate_instance_context().
    """
    if isinstance(obj, InstanceContext):
        data = obj.model_dump()
    elif isinstance(obj, Mapping):
        data = dict(obj)
    else:
        return False

    api_url = data.get("api_url")
    api_key = data.get("api_key")
    timeout = data.get("api_timeout")
    retries = data.get("api_max_retries")
    metadata = data.get("metadata")

    return (
        (
            api_url is None
            or (
                isinstance(api_url, str)
                and validate_url_sync(api_url, SecurityMode.PERMISSIVE).valid
            )
        )
        and (api_key is None or (isinstance(api_key, str) and is_valid_api_key(api_key)))
        and (timeout is None or (_is_number(timeout) and timeout > 0))
        and (retries is None or (_is_number(retries) and retries >= 0))
        and (data.get("instance_id") is None or isinstance(data["instance_id"], str))
        and (data.get("session_id") is None or isinstance(data["session_id"], str))
        and (metadata is None or isinstance(metadata, Mapping))
    )


__all__ = [
    "InstanceContext",
    "ContextValidationResult",
    "API_KEY_PLACEHOLDERS",
    "is_valid_api_key",
    "validate_instance_context",
    "is_instance_context",
]
