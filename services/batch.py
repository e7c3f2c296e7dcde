"""
Per-item error reporting for multi-item operations.

Batch operations never abort on a single item's failure. Each failure is
captured here and the batch carries on; a batch whose error list is not
empty finished as a partial failure, which is still a successful request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from domain.errors import SalesOpsError


@dataclass(frozen=True, slots=True)
class BatchItemError:
    sale_id: str
    error: str
    reference: Optional[str] = None
    code: Optional[str] = None

    @staticmethod
    def from_exception(sale_id: str, exc: Exception, reference: Optional[str] = None) -> "BatchItemError":
        code = exc.code if isinstance(exc, SalesOpsError) else None
        message = str(exc) or type(exc).__name__
        return BatchItemError(sale_id=sale_id, error=message, reference=reference, code=code)


__all__ = ["BatchItemError"]
