from __future__ import annotations

from typing import Any


class LarderError(Exception):
    """Base class for every error the inventory engine raises on purpose."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFoundError(LarderError):
    def __init__(self, resource: str, identifier: object) -> None:
        super().__init__(f"{resource} not found: {identifier}")
        self.resource = resource
        self.identifier = identifier


class PermissionDeniedError(LarderError):
    pass


class ValidationError(LarderError):
    pass


class InsufficientStockError(LarderError):
    """Raised when a usage or a recipe needs more stock than is available.

    ``shortfall`` is the missing amount for a single-item usage. For a recipe
    it is the sum over ``shortages``, which lists every deficient ingredient.
    """

    def __init__(
        self,
        detail: str,
        *,
        shortfall: float = 0.0,
        shortages: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(detail)
        self.shortfall = shortfall
        self.shortages = shortages or []


class DependencyFailure(LarderError):
    """Raised when a storage call fails. The original error is kept as ``__cause__``."""

    def __init__(self, operation: str, cause: BaseException) -> None:
        super().__init__(f"Storage operation '{operation}' failed: {cause}")
        self.operation = operation
        self.cause = cause
