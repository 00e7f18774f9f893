"""FastAPI dependencies for admin endpoints."""

from typing import Annotated

from fastapi import Depends, Request

from inkpress.admin.service import DashboardService
from inkpress.core.errors import ServiceUnavailableError
from inkpress.counters.reconcile import ReconciliationService


def get_dashboard_service(request: Request) -> DashboardService:
    service = getattr(request.app.state, "dashboard_service", None)
    if service is None:
        raise ServiceUnavailableError("Dashboard service not available")
    return service


def get_reconciliation_service(request: Request) -> ReconciliationService:
    service = getattr(request.app.state, "reconciliation_service", None)
    if service is None:
        raise ServiceUnavailableError("Reconciliation service not available")
    return service


DashboardServiceDep = Annotated[DashboardService, Depends(get_dashboard_service)]
ReconciliationServiceDep = Annotated[
    ReconciliationService, Depends(get_reconciliation_service)
]
