"""Leave profile Pydantic v2 schemas: profiles, contracts, balances.

Naming conventions:
  - *Create / *Update / *Request  → request bodies (write)
  - *Out                          → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ops_portal.common.constants import ApprovalMode, LeaveTypeCode


# ═════════════════════════════════════════════════════════════════════
# Profile
# ═════════════════════════════════════════════════════════════════════


class ProfileCreate(BaseModel):
    employee_id: str = Field(..., min_length=1, max_length=64)
    employee_login_id: str = Field(..., min_length=1, max_length=100)
    join_date: date
    # first contract start; defaults to join_date
    contract_date: Optional[date] = None
    contract_end_date: Optional[date] = None
    manager_login_id: Optional[str] = Field(None, max_length=100)
    gm_login_id: Optional[str] = Field(None, max_length=100)
    coo_login_id: Optional[str] = Field(None, max_length=100)
    approval_mode: Optional[ApprovalMode] = None

    @field_validator("employee_id", "employee_login_id", "manager_login_id", "gm_login_id", "coo_login_id")
    @classmethod
    def _strip(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None

    @model_validator(mode="after")
    def _contract_dates(self) -> "ProfileCreate":
        start = self.contract_date or self.join_date
        if start < self.join_date:
            raise ValueError("contract_date cannot be before join_date")
        if self.contract_end_date and self.contract_end_date < start:
            raise ValueError("contract_end_date must be on or after the contract start")
        return self


class ProfileUpdate(BaseModel):
    manager_login_id: Optional[str] = Field(None, max_length=100)
    gm_login_id: Optional[str] = Field(None, max_length=100)
    coo_login_id: Optional[str] = Field(None, max_length=100)
    approval_mode: Optional[ApprovalMode] = None
    is_active: Optional[bool] = None


class ContractOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    contract_no: int
    start_date: date
    end_date: Optional[date] = None
    al_carry_in: Decimal
    accrual_baseline_months: int
    opened_by: Optional[str] = None
    closed_at: Optional[datetime] = None
    closed_by: Optional[str] = None
    close_snapshot: Optional[dict] = None
    note: Optional[str] = None


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: str
    employee_login_id: str
    name: Optional[str] = None
    department: Optional[str] = None
    join_date: date
    current_contract_start: Optional[date] = None
    manager_login_id: Optional[str] = None
    gm_login_id: Optional[str] = None
    coo_login_id: Optional[str] = None
    approval_mode: ApprovalMode
    is_active: bool
    balances_cache: Optional[dict] = None
    balances_as_of: Optional[date] = None
    contracts: list[ContractOut] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ═════════════════════════════════════════════════════════════════════
# Contract renewal
# ═════════════════════════════════════════════════════════════════════


class RenewContractRequest(BaseModel):
    start_date: date
    end_date: Optional[date] = None
    note: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def _dates(self) -> "RenewContractRequest":
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


# ═════════════════════════════════════════════════════════════════════
# Balances
# ═════════════════════════════════════════════════════════════════════


class BalanceOut(BaseModel):
    leave_type_code: LeaveTypeCode
    yearly_entitlement: Decimal
    used: Decimal
    remaining: Decimal
    strict_remaining: Optional[Decimal] = None
    accrued: Optional[Decimal] = None
    carry_in: Optional[Decimal] = None


class BalancesOut(BaseModel):
    employee_id: str
    as_of: date
    contract_no: Optional[int] = None
    window_start: date
    window_end: date
    service_years: int
    balances: list[BalanceOut]
