"""Pydantic schemas for license endpoints."""
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field


class LicensePurchaseRequest(BaseModel):
    """Schema for purchasing a license."""
    project_id: str = Field(..., min_length=1)
    license_type: str = Field(..., min_length=1, max_length=50)

    class Config:
        extra = "forbid"


class PaymentConfirmRequest(BaseModel):
    """Schema for confirming a license payment."""
    payment_intent_id: str = Field(..., min_length=1)

    class Config:
        extra = "forbid"


class LicensePermissions(BaseModel):
    view_code: bool
    download_code: bool
    commercial_use: bool
    modify: bool
    redistribute: bool
    private_use: bool


class LicenseResponse(BaseModel):
    """Schema for license detail response."""
    uuid: str
    project_id: str
    licensee_id: str
    license_type: str
    permissions: LicensePermissions
    amount: float
    currency: str
    payment_intent_id: Optional[str] = None
    payment_status: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
    expires_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LicensePurchaseResponse(BaseModel):
    """Result of a purchase: the license plus a client secret when payment is due."""
    message: str
    license: LicenseResponse
    client_secret: Optional[str] = None


class PaymentConfirmResponse(BaseModel):
    message: str
    license: LicenseResponse


class LicenseListResponse(BaseModel):
    """Schema for paginated license list response."""
    items: List[LicenseResponse]
    total: int
    skip: int
    limit: int


class LicenseOption(BaseModel):
    """One tier resolved against a project's price."""
    license_type: str
    amount: float
    currency: str
    permissions: LicensePermissions
    duration_days: Optional[int] = None


class LicenseOptionsResponse(BaseModel):
    project_id: str
    options: List[LicenseOption]
