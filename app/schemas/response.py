"""Response envelope shared by every endpoint."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.blog import Pagination


class ApiResponse[T](BaseModel):
    """
    ``{success, data?, message?, errors?, pagination?}``.

    Error responses are produced by the exception handlers with the same
    shape and ``success: false``.
    """

    model_config = ConfigDict(ser_json_timedelta="iso8601")

    success: bool = True
    data: T | None = None
    message: str | None = None
    errors: list[dict[str, Any]] | None = None
    pagination: Pagination | None = None


class HealthServices(BaseModel):
    database: str = Field(..., examples=["healthy"])
    storage: str = Field(..., examples=["healthy"])
    cache: str = Field(..., examples=["in-memory"])


class HealthResponse(BaseModel):
    success: bool
    status: str = Field(..., examples=["healthy", "unhealthy"])
    services: HealthServices
    uptime: float = Field(..., description="Seconds since startup")
    timestamp: str
    environment: str
