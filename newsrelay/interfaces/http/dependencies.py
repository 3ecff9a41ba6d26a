"""Request-scoped helpers shared by the route modules."""

import time
import uuid
from typing import Optional, TypeVar

from fastapi import Request

from ...application.orchestrator import FetchOrchestrator
from ...config import Settings
from ...domain.exceptions import UpstreamUnavailableError
from ...infrastructure.components import Components

T = TypeVar("T")


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
    request.state.request_id = request_id
    request.state.start_time_monotonic = getattr(
        request.state, "start_time_monotonic", time.monotonic()
    )
    return request_id


def get_identity(request: Request) -> Optional[str]:
    """Caller identity set by the auth layer in front of this service."""
    settings: Settings = request.app.state.settings
    return request.headers.get(settings.identity_header)


def require_identity(request: Request, request_id: str) -> str:
    return FetchOrchestrator.require_identity(get_identity(request), request_id)


def get_components(request: Request) -> Components:
    return request.app.state.components


def require_service(service: Optional[T], feature: str, request_id: str) -> T:
    """Return ``service`` or fail when its providers are not configured."""
    if service is None:
        raise UpstreamUnavailableError(
            f"{feature} is not available: required provider keys are not configured",
            request_id=request_id,
        )
    return service
