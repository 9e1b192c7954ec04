"""Schemas for sandbox endpoints."""
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel


class SandboxUploadResponse(BaseModel):
    message: str
    project_id: str
    files: List[str]


class SandboxNode(BaseModel):
    """A file or directory in a project sandbox."""

    name: str
    type: str
    path: str
    size: Optional[int] = None
    modified: Optional[datetime] = None
    children: Optional[List["SandboxNode"]] = None


class SandboxTreeResponse(BaseModel):
    project_id: str
    files: List[SandboxNode]


class SandboxFileResponse(BaseModel):
    filename: str
    content: str
    size: int
    modified: datetime


class SandboxRunResponse(BaseModel):
    type: str
    success: bool
    content: Optional[str] = None
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    message: Optional[str] = None
