"""
Shared value types for outbound URL validation.

- SecurityMode: the trust level a caller validates under
- BlockCategory: why a URL was rejected
- ValidationResult: the verdict returned by every validation entry point
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class SecurityMode(str, Enum):
    """
    Trust level for outbound destinations.

    Ordered from most to least restrictive:
    - STRICT: block cloud metadata, localhost and private ranges
    - MODERATE: allow localhost, block cloud metadata and private ranges
    - PERMISSIVE: block cloud metadata only
    """

    STRICT = "strict"
    MODERATE = "moderate"
    PERMISSIVE = "permissive"

    @classmethod
    def parse(cls, value: SecurityMode | str | None) -> SecurityMode:
        """
        Coerce a mode name or member into a SecurityMode.

        None maps to STRICT. Unknown names raise ValueError; they are a
        configuration defect and must never silently pick a mode.
        """
        if value is None:
            return cls.STRICT
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ValueError(
                f"Unknown security mode '{value}' (expected one of: {allowed})"
            ) from None


class BlockCategory(str, Enum):
    """Reason category attached to a blocked verdict."""

    MALFORMED_URL = "malformed_url"
    DISALLOWED_PROTOCOL = "disallowed_protocol"
    CLOUD_METADATA = "cloud_metadata"
    LOCALHOST = "localhost"
    PRIVATE_ADDRESS = "private_address"
    RESOLUTION_FAILED = "resolution_failed"


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of validating one URL.

    reason and category are set if and only if valid is False.
    """

    valid: bool
    reason: str | None = None
    category: BlockCategory | None = None

    def __post_init__(self) -> None:
        if self.valid and (self.reason is not None or self.category is not None):
            raise ValueError("A valid result cannot carry a reason")
        if not self.valid and not self.reason:
            raise ValueError("A blocked result requires a reason")

    def __bool__(self) -> bool:
        return self.valid

    @classmethod
    def ok(cls) -> ValidationResult:
        """An allowed verdict."""
        return cls(valid=True)

    @classmethod
    def blocked(cls, reason: str, category: BlockCategory) -> ValidationResult:
        """A blocked verdict with its reason and category."""
        return cls(valid=False, reason=reason, category=category)

    def to_dict(self) -> dict[str, Any]:
        """Serialize as {"valid": ...} plus "reason" and "category" when blocked."""
        data: dict[str, Any] = {"valid": self.valid}
        if not self.valid:
            data["reason"] = self.reason
            data["category"] = self.category.value if self.category else None
        return data


__all__ = ["SecurityMode", "BlockCategory", "ValidationResult"]
