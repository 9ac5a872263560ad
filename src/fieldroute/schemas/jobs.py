"""Async optimization job schemas."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel

JobStatusLiteral = Literal["pending", "processing", "completed", "failed"]


class AsyncOptimizeAccepted(BaseModel):
    job_id: str
    status: JobStatusLiteral = "pending"
    poll_url: str


class JobErrorModel(BaseModel):
    code: str
    message: str


class JobStatusResponse(BaseModel):
    id: str
    status: JobStatusLiteral
    progress: int
    garage_id: str
    date: str
    created_at: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    result: Optional[dict] = None
    error: Optional[JobErrorModel] = None
