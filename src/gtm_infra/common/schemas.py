"""Shared Pydantic schemas for GTM-Infra."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "gtm-infra"


class ErrorResponse(BaseModel):
    error: str
    code: str
    detail: str = ""
