"""
schemas/company.py
------------------
Pydantic request/response models for companies and the two dashboards.

Naming convention:
  CompanyRegister → inbound request body
  CompanyRead     → outbound response body (never exposes internal fields)
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from vault.schemas.user import UserRead


class CompanyRegister(BaseModel):
    """Public sign-up: the company plus its first (super admin) user."""
    company_name: str = Field(
        ...,
        min_length=2,
        max_length=255,
        examples=["Acme Corp"],
        description="Unique company name",
    )
    contact_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr = Field(..., description="Company email, also the admin's login")
    password: str = Field(..., min_length=8, max_length=128)
    phone_number: str = Field(default="", max_length=40)
    city: str = Field(default="", max_length=120)
    state: str = Field(default="", max_length=120)
    pin_code: str = Field(default="", max_length=20)
    country: str = Field(default="", max_length=120)

    @field_validator("company_name", "contact_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()


class CompanyRead(BaseModel):
    id: str
    company_name: str
    email: str
    contact_name: str
    phone_number: str
    city: str
    state: str
    pin_code: str
    country: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class CompanyRegistered(BaseModel):
    company: CompanyRead
    admin: UserRead


class CompanyStatusUpdate(BaseModel):
    is_active: bool


class CompanyDashboard(BaseModel):
    total_users: int
    active_users: int
    inactive_users: int
    total_credentials: int


class MasterDashboard(BaseModel):
    total_companies: int
    active_companies: int
    inactive_companies: int
    total_users: int
