from __future__ import annotations

from typing import Any

from medsim_api.domain.schemas.base import BaseSchema


class ErrorBody(BaseSchema):
    code: int
    message: str
    details: dict[str, Any] | None = None


class ErrorEnvelope(BaseSchema):
    error: ErrorBody


class HealthStatus(BaseSchema):
    status: str
    scheduler: str
    pending_requests: int


__all__ = ["ErrorBody", "ErrorEnvelope", "HealthStatus"]
