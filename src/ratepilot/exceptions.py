"""Errors raised to callers of the pricing engine."""

from __future__ import annotations


class PricingNotConfiguredError(LookupError):
    """The property has no seasonal pricing configuration, or it is disabled."""

    def __init__(self, property_id: str) -> None:
        super().__init__(
            f"Seasonal pricing not configured or disabled for property {property_id!r}"
        )
        self.property_id = property_id


class UnsupportedAlgorithmError(NotImplementedError):
    """The configured adjustment method has no implementation."""

    def __init__(self, algorithm: str) -> None:
        super().__init__(f"Adjustment algorithm {algorithm!r} is not implemented")
        self.algorithm = algorithm


class NoPendingApprovalError(LookupError):
    """Nothing is waiting for approval for this property and room type."""

    def __init__(self, property_id: str, room_type_id: str) -> None:
        super().__init__(f"No pricing change pending approval for {property_id}/{room_type_id}")
        self.property_id = property_id
        self.room_type_id = room_type_id


class RollbackUnavailableError(RuntimeError):
    """Rollback is disabled for the property or there is no applied batch to undo."""


class OverrideNotAllowedError(ValueError):
    """A validation override was requested that the configuration does not permit."""
