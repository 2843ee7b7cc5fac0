from __future__ import annotations

from typing import Any


class CurationError(Exception):
    """Base class for every failure the curation core reports to its callers."""

    kind = "curation_error"

    def detail(self) -> dict[str, Any]:
        return {}


class CapacityExceeded(CurationError):
    kind = "capacity_exceeded"

    def __init__(self, current: int, requested: int, limit: int) -> None:
        super().__init__(f"cannot add {requested} image(s) to {current}: maximum is {limit}")
        self.current = current
        self.requested = requested
        self.limit = limit

    def detail(self) -> dict[str, Any]:
        return {"current": self.current, "requested": self.requested, "limit": self.limit}


class IndexOutOfRange(CurationError):
    kind = "index_out_of_range"

    def __init__(self, index: int, size: int) -> None:
        super().__init__(f"image index {index} is out of range for {size} image(s)")
        self.index = index
        self.size = size

    def detail(self) -> dict[str, Any]:
        return {"index": self.index, "size": self.size}


class UploadFailed(CurationError):
    kind = "upload_failed"

    def __init__(self, index: int, reason: str) -> None:
        super().__init__(f"upload of image {index} failed: {reason}")
        self.index = index
        self.reason = reason

    def detail(self) -> dict[str, Any]:
        return {"index": self.index, "reason": self.reason}


class InvalidImage(CurationError):
    kind = "invalid_image"

    def __init__(self, filename: str, reason: str) -> None:
        super().__init__(f"{filename}: {reason}")
        self.filename = filename
        self.reason = reason

    def detail(self) -> dict[str, Any]:
        return {"filename": self.filename, "reason": self.reason}


class MissingValuation(CurationError):
    kind = "missing_valuation"

    def __init__(self, slot_kind: str) -> None:
        super().__init__(f"slot '{slot_kind}' requires a valuation")
        self.slot_kind = slot_kind

    def detail(self) -> dict[str, Any]:
        return {"slot_kind": self.slot_kind}


class GenerationFailed(CurationError):
    kind = "generation_failed"

    def __init__(self, slot_kind: str, reason: str) -> None:
        super().__init__(f"generation for slot '{slot_kind}' failed: {reason}")
        self.slot_kind = slot_kind
        self.reason = reason

    def detail(self) -> dict[str, Any]:
        return {"slot_kind": self.slot_kind, "reason": self.reason}


class StoreWriteFailed(CurationError):
    kind = "store_write_failed"

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"write to '{key}' failed: {reason}")
        self.key = key
        self.reason = reason

    def detail(self) -> dict[str, Any]:
        return {"key": self.key, "reason": self.reason}


class StoreError(CurationError):
    """Read-side store failure (missing or unreadable record)."""

    kind = "store_error"

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"read of '{key}' failed: {reason}")
        self.key = key
        self.reason = reason

    def detail(self) -> dict[str, Any]:
        return {"key": self.key, "reason": self.reason}


# Raised by collaborators; the core translates them into the taxonomy above.


class ProviderError(Exception):
    pass


class UploadError(Exception):
    pass
