"""External store clients (Supabase/PostgREST)."""

from .central_registry import RESTCentralRegistryClient
from .postgrest import PostgRESTClient
from .resilience import CircuitBreaker, CircuitBreakerConfig, CircuitOpenError, CircuitState
from .schedule_gateway import RESTExternalScheduleGateway

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitOpenError",
    "CircuitState",
    "PostgRESTClient",
    "RESTCentralRegistryClient",
    "RESTExternalScheduleGateway",
]
