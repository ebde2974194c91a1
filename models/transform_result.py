from __future__ import annotations
from dataclasses import dataclass


@dataclass
class TransformResult:
    """
    Outcome of a best-effort image transform.

    • degraded=False → `image` is the transformed data URI.
    • degraded=True  → `image` is the untouched input, `reason` says why.
    """
    image: str
    degraded: bool = False
    reason: str | None = None

    @classmethod
    def passthrough(cls, image: str, reason: str) -> "TransformResult":
        return cls(image=image, degraded=True, reason=reason)
