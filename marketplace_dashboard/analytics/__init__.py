"""
Analytics Module

Dashboard aggregation engine: filter resolution, aggregation queries,
series gap-filling and the request-scoped service that ties them together.
"""
from .filters import DashboardFilters, resolve_filters
from .service import DashboardService, TenantContext

__all__ = [
    "DashboardFilters",
    "resolve_filters",
    "DashboardService",
    "TenantContext",
]
