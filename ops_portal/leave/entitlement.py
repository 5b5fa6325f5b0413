"""Entitlement calculator: balances per leave type as of a date.

Pure and deterministic: the same (join date, contract, approved history,
as-of date) always produces the same ``BalanceSnapshot``. Nothing here
touches the database; callers decide whether to cache the result.

Law:
  - Contract-year window: the year of the contract that contains as_of,
    anniversary .. anniversary + 1 year - 1 day, clamped to the contract's
    end date. An open contract rolls into a fresh window every year; past
    the first year accrual restarts at the window start and carry-in no
    longer applies.
  - AL cap: 18 + floor(service_years / 3).
  - AL accrued: min(cap, months_in_contract * 1.5), where
    months_in_contract = full_months(join, as_of) - contract baseline.
  - SP usage is charged against AL as well (SP borrows from AL).
  - AL remaining = accrued + carry_in - (AL used + SP used); may be negative.
  - SP / MC / MA remaining = max(0, cap - used). UL / BL have no balance.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional

from ops_portal.common.constants import (
    AL_ACCRUAL_PER_MONTH,
    AL_BASE_CAP,
    AL_CAP_STEP_YEARS,
    MA_YEARLY_CAP,
    MC_YEARLY_CAP,
    SP_YEARLY_CAP,
    LeaveTypeCode,
)
from ops_portal.common.dates import add_years, contract_year_end, full_months_between, service_years

ZERO = Decimal("0")

# Fixed yearly caps for the non-accruing types
_FIXED_CAPS: dict[LeaveTypeCode, int] = {
    LeaveTypeCode.SP: SP_YEARLY_CAP,
    LeaveTypeCode.MC: MC_YEARLY_CAP,
    LeaveTypeCode.MA: MA_YEARLY_CAP,
}

_UNMETERED = (LeaveTypeCode.UL, LeaveTypeCode.BL)


@dataclass(frozen=True)
class ContractTerms:
    """The slice of a contract the calculator needs."""

    contract_no: int
    start_date: date
    end_date: Optional[date] = None
    al_carry_in: Decimal = ZERO
    accrual_baseline_months: int = 0

    @classmethod
    def from_contract(cls, contract: Any) -> "ContractTerms":
        return cls(
            contract_no=contract.contract_no,
            start_date=contract.start_date,
            end_date=contract.end_date,
            al_carry_in=Decimal(contract.al_carry_in or 0),
            accrual_baseline_months=int(contract.accrual_baseline_months or 0),
        )


@dataclass(frozen=True)
class LeaveUsage:
    """One leave request's contribution to usage."""

    leave_type: LeaveTypeCode
    start_date: date
    total_days: Decimal


@dataclass(frozen=True)
class BalanceRow:
    leave_type_code: LeaveTypeCode
    yearly_entitlement: Decimal
    used: Decimal
    remaining: Decimal
    strict_remaining: Decimal
    accrued: Optional[Decimal] = None
    carry_in: Optional[Decimal] = None

    def to_dict(self) -> dict[str, Any]:
        out = {
            "leave_type_code": self.leave_type_code.value,
            "yearly_entitlement": str(self.yearly_entitlement),
            "used": str(self.used),
            "remaining": str(self.remaining),
            "strict_remaining": str(self.strict_remaining),
        }
        if self.accrued is not None:
            out["accrued"] = str(self.accrued)
        if self.carry_in is not None:
            out["carry_in"] = str(self.carry_in)
        return out


@dataclass(frozen=True)
class BalanceSnapshot:
    as_of: date
    contract_no: Optional[int]
    window_start: date
    window_end: date
    service_years: int
    balances: tuple[BalanceRow, ...] = field(default_factory=tuple)

    def get(self, code: LeaveTypeCode) -> BalanceRow:
        for row in self.balances:
            if row.leave_type_code == code:
                return row
        raise KeyError(code)

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe form used for the profile cache and close snapshots."""
        return {
            "as_of": self.as_of.isoformat(),
            "contract_no": self.contract_no,
            "window_start": self.window_start.isoformat(),
            "window_end": self.window_end.isoformat(),
            "service_years": self.service_years,
            "balances": [row.to_dict() for row in self.balances],
        }


# ── Building blocks ─────────────────────────────────────────────────

def al_cap(join_date: date, as_of: date) -> int:
    return AL_BASE_CAP + service_years(join_date, as_of) // AL_CAP_STEP_YEARS


def accrued_al(join_date: date, terms: ContractTerms, as_of: date) -> Decimal:
    months = full_months_between(join_date, as_of) - terms.accrual_baseline_months
    months = max(0, months)
    return min(Decimal(al_cap(join_date, as_of)), months * AL_ACCRUAL_PER_MONTH)


def contract_year_index(terms: ContractTerms, as_of: date) -> int:
    """Zero-based contract year containing *as_of* (never past the end date)."""
    ref = as_of
    if terms.end_date is not None and ref > terms.end_date:
        ref = terms.end_date
    return service_years(terms.start_date, ref)


def contract_window(terms: ContractTerms, as_of: date) -> tuple[date, date]:
    start = add_years(terms.start_date, contract_year_index(terms, as_of))
    end = contract_year_end(start)
    if terms.end_date is not None and terms.end_date < end:
        end = terms.end_date
    return start, end


def terms_for_year(terms: ContractTerms, year_index: int) -> ContractTerms:
    """Terms seen from a later year of the same contract."""
    if year_index == 0:
        return terms
    return replace(
        terms,
        al_carry_in=ZERO,
        accrual_baseline_months=terms.accrual_baseline_months + 12 * year_index,
    )


def sum_usage(
    items: Iterable[LeaveUsage],
    window_start: date,
    window_end: date,
) -> dict[LeaveTypeCode, Decimal]:
    """Total days per type for items *starting* inside the window."""
    totals = {code: ZERO for code in LeaveTypeCode}
    for item in items:
        if window_start <= item.start_date <= window_end:
            totals[item.leave_type] += Decimal(item.total_days)
    return totals


# ── Entry point ─────────────────────────────────────────────────────

def compute_balances(
    join_date: date,
    contract: Optional[ContractTerms],
    approved: Iterable[LeaveUsage],
    as_of: date,
    pending: Iterable[LeaveUsage] = (),
) -> BalanceSnapshot:
    """Balances for the contract year of *contract* that contains *as_of*.

    Without a contract the join date opens an implicit contract with
    no carry and no baseline. *pending* only feeds ``strict_remaining``.
    """
    terms = contract or ContractTerms(contract_no=0, start_date=join_date)
    window_start, window_end = contract_window(terms, as_of)
    terms = terms_for_year(terms, contract_year_index(terms, as_of))

    used = sum_usage(approved, window_start, window_end)
    held = sum_usage(pending, window_start, window_end)

    cap = Decimal(al_cap(join_date, as_of))
    accrued = accrued_al(join_date, terms, as_of)
    carry = terms.al_carry_in

    al_used = used[LeaveTypeCode.AL] + used[LeaveTypeCode.SP]
    al_held = held[LeaveTypeCode.AL] + held[LeaveTypeCode.SP]
    al_remaining = accrued + carry - al_used

    rows: list[BalanceRow] = [
        BalanceRow(
            leave_type_code=LeaveTypeCode.AL,
            yearly_entitlement=cap,
            used=al_used,
            remaining=al_remaining,
            strict_remaining=al_remaining - al_held,
            accrued=accrued,
            carry_in=carry,
        )
    ]

    for code, limit in _FIXED_CAPS.items():
        ent = Decimal(limit)
        rows.append(
            BalanceRow(
                leave_type_code=code,
                yearly_entitlement=ent,
                used=used[code],
                remaining=max(ZERO, ent - used[code]),
                strict_remaining=max(ZERO, ent - used[code] - held[code]),
            )
        )

    for code in _UNMETERED:
        rows.append(
            BalanceRow(
                leave_type_code=code,
                yearly_entitlement=ZERO,
                used=used[code],
                remaining=ZERO,
                strict_remaining=ZERO,
            )
        )

    return BalanceSnapshot(
        as_of=as_of,
        contract_no=contract.contract_no if contract else None,
        window_start=window_start,
        window_end=window_end,
        service_years=service_years(join_date, as_of),
        balances=tuple(rows),
    )
