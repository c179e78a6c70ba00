from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from medsim_api.services.chat import ChatService
from medsim_api.services.inference import InferenceScheduler
from medsim_api.services.sessions import CaseSessionManager


def _app_state_attribute(request: Request, name: str) -> object:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="MedSim services are not initialised.",
        )
    return value


def get_chat_service(request: Request) -> ChatService:
    service = _app_state_attribute(request, "chat_service")
    assert isinstance(service, ChatService)
    return service


def get_session_manager(request: Request) -> CaseSessionManager:
    manager = _app_state_attribute(request, "session_manager")
    assert isinstance(manager, CaseSessionManager)
    return manager


def get_scheduler(request: Request) -> InferenceScheduler:
    scheduler = _app_state_attribute(request, "scheduler")
    assert isinstance(scheduler, InferenceScheduler)
    return scheduler


ChatServiceDependency = Annotated[ChatService, Depends(get_chat_service)]
SessionManagerDependency = Annotated[CaseSessionManager, Depends(get_session_manager)]
SchedulerDependency = Annotated[InferenceScheduler, Depends(get_scheduler)]


__all__ = [
    "ChatServiceDependency",
    "SchedulerDependency",
    "SessionManagerDependency",
    "get_chat_service",
    "get_scheduler",
    "get_session_manager",
]
