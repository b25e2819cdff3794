"""Pydantic schemas for health check and API info responses."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response body for the health check endpoint."""

    status: Literal["ok", "degraded"] = Field(default="ok", description="Service status")
    environment: str = Field(description="Current app environment (e.g. dev, prod)")
    database: Literal["connected", "disconnected"] | None = Field(
        default=None,
        description="Database connectivity status when check is performed",
    )


class ApiInfoResponse(BaseModel):
    """Response body for GET /: name, version and entry points."""

    name: str
    version: str
    description: str
    endpoints: dict[str, str]
    authenticated_as: str | None = Field(
        default=None,
        description="Name of the caller when a valid token was sent",
    )
