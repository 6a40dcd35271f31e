"""FastAPI dependencies resolving services from the app's ServiceContainer."""

from __future__ import annotations

from fastapi import Request

from backend.app.core.container import ServiceContainer
from backend.app.incidents.manager import IncidentManager
from backend.app.location.service import LocationService


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_incident_manager(request: Request) -> IncidentManager:
    return get_container(request).incident_manager


def get_location_service(request: Request) -> LocationService:
    return get_container(request).location_service
