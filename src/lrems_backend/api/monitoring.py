from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Header, Query, Response, status

from lrems_backend.api.conditional import FreshnessDirective, conditional_response
from lrems_backend.api.dependencies import get_current_principal, get_monitoring_service
from lrems_backend.interface.monitoring import (
    EvaluatorGet,
    MonitoringCreate,
    MonitoringGet,
    MonitoringQuery,
    MonitoringUpdate,
    TaskStatusChange,
)
from lrems_backend.permissions.principal import Principal
from lrems_backend.services.monitoring_service import MonitoringService

monitoring_router = APIRouter()


@monitoring_router.get("")
async def list_monitoring_entries(
    principal: Annotated[Principal, Depends(get_current_principal)],
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
    params: Annotated[MonitoringQuery, Query()],
    if_none_match: Annotated[Optional[str], Header()] = None,
):
    result = await service.list_entries(principal, params)
    return conditional_response(result, if_none_match, FreshnessDirective.from_settings())


@monitoring_router.get("/{book_code}", response_model=MonitoringGet)
async def get_monitoring_entry(
    book_code: str,
    principal: Annotated[Principal, Depends(get_current_principal)],
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
):
    return service.get_entry(principal, book_code)


@monitoring_router.post("", response_model=MonitoringGet, status_code=status.HTTP_201_CREATED)
async def create_monitoring_entry(
    payload: MonitoringCreate,
    principal: Annotated[Principal, Depends(get_current_principal)],
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
):
    return await service.create_entry(principal, payload)


@monitoring_router.patch("/{book_code}", response_model=MonitoringGet)
async def update_monitoring_entry(
    book_code: str,
    payload: MonitoringUpdate,
    principal: Annotated[Principal, Depends(get_current_principal)],
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
):
    return await service.update_entry(principal, book_code, payload)


@monitoring_router.delete("/{book_code}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_monitoring_entry(
    book_code: str,
    principal: Annotated[Principal, Depends(get_current_principal)],
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
):
    await service.delete_entry(principal, book_code)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@monitoring_router.patch("/{book_code}/evaluators/{evaluator_id}/task-status", response_model=EvaluatorGet)
async def update_task_status(
    book_code: str,
    evaluator_id: str,
    payload: TaskStatusChange,
    principal: Annotated[Principal, Depends(get_current_principal)],
    service: Annotated[MonitoringService, Depends(get_monitoring_service)],
):
    return await service.update_task_status(principal, book_code, evaluator_id, payload.root)
