from __future__ import annotations

from fastapi import APIRouter

from medsim_api.api.dependencies import SchedulerDependency
from medsim_api.domain.schemas.common import HealthStatus

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthStatus)
async def health(scheduler: SchedulerDependency) -> HealthStatus:
    """Liveness check that also reports the inference queue depth."""
    return HealthStatus(
        status="ok",
        scheduler=scheduler.state.value,
        pending_requests=scheduler.pending,
    )
