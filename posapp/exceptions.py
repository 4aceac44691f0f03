"""Error taxonomy shared by every ledger service."""

from __future__ import annotations


class PosError(Exception):
    """Base class for failures surfaced to callers of the POS services."""

    status_code = 500
    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, object]:
        return {"error": self.message, "kind": self.kind}


class NotFoundError(PosError):
    status_code = 404
    kind = "not_found"


class ValidationError(PosError):
    status_code = 400
    kind = "validation"


class IntegrityWarning(PosError):
    """Advisory problem that the caller may acknowledge and retry past."""

    status_code = 409
    kind = "warning"

    def __init__(self, warnings: list[str]) -> None:
        super().__init__("; ".join(warnings))
        self.warnings = list(warnings)

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        payload["warnings"] = self.warnings
        return payload


class StorageError(PosError):
    status_code = 503
    kind = "storage"

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation
