"""Contract ledger rules: which contract applies, and how renewal works.

Both functions are pure; ``ProfileService`` applies their results to the
ORM objects inside a single versioned write.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional, Sequence

from ops_portal.common.dates import full_months_between
from ops_portal.common.exceptions import ValidationException


def _contains(contract: Any, as_of: date) -> bool:
    if as_of < contract.start_date:
        return False
    return contract.end_date is None or as_of <= contract.end_date


def select_contract(
    contracts: Sequence[Any],
    *,
    contract_id: Any = None,
    contract_no: Optional[int] = None,
    as_of: Optional[date] = None,
    current_start: Optional[date] = None,
) -> Optional[Any]:
    """Pick the contract a balance question is about.

    Most to least specific: explicit id / number, the contract whose span
    holds *as_of*, the profile's current-contract start, the latest start.
    An explicit id or number that matches nothing yields ``None``.
    """
    if not contracts:
        return None

    if contract_id is not None or contract_no is not None:
        for c in contracts:
            if contract_id is not None and str(c.id) == str(contract_id):
                return c
            if contract_no is not None and c.contract_no == contract_no:
                return c
        return None

    if as_of is not None:
        # latest start first so an open contract wins over a stale one
        for c in sorted(contracts, key=lambda c: c.start_date, reverse=True):
            if _contains(c, as_of):
                return c

    if current_start is not None:
        for c in contracts:
            if c.start_date == current_start:
                return c

    return max(contracts, key=lambda c: (c.start_date, c.contract_no))


def open_contract(contracts: Sequence[Any]) -> Optional[Any]:
    """The contract that has not been closed yet (latest if several)."""
    open_ = [c for c in contracts if c.closed_at is None]
    if not open_:
        return None
    return max(open_, key=lambda c: c.contract_no)


@dataclass(frozen=True)
class RenewalPlan:
    close_on: Optional[date]
    contract_no: int
    start_date: date
    end_date: Optional[date]
    al_carry_in: Decimal
    accrual_baseline_months: int


def carry_from(remaining_al: Decimal) -> Decimal:
    """Only debt moves into the next contract; surplus is dropped."""
    return min(Decimal("0"), Decimal(remaining_al))


def plan_renewal(
    *,
    join_date: date,
    contracts: Sequence[Any],
    new_start: date,
    new_end: Optional[date],
    remaining_al: Decimal,
) -> RenewalPlan:
    """Validate a renewal request and describe the resulting ledger change.

    *remaining_al* is the AL balance of the closing contract on its last
    day (``new_start - 1``).
    """
    errors: dict[str, list[str]] = {}
    current = open_contract(contracts)

    if new_start < join_date:
        errors.setdefault("start_date", []).append(
            "New contract cannot start before the join date."
        )
    if current is not None and new_start <= current.start_date:
        errors.setdefault("start_date", []).append(
            f"New contract must start after the current contract "
            f"({current.start_date.isoformat()})."
        )
    latest_start = max((c.start_date for c in contracts), default=None)
    if latest_start is not None and new_start <= latest_start:
        errors.setdefault("start_date", []).append(
            "New contract would overlap an existing contract."
        )
    if new_end is not None and new_end < new_start:
        errors.setdefault("end_date", []).append("end_date must be on or after start_date.")
    if errors:
        # de-duplicate messages produced by the current/latest checks
        raise ValidationException({k: list(dict.fromkeys(v)) for k, v in errors.items()})

    return RenewalPlan(
        close_on=(new_start - timedelta(days=1)) if current is not None else None,
        contract_no=max((c.contract_no for c in contracts), default=0) + 1,
        start_date=new_start,
        end_date=new_end,
        al_carry_in=carry_from(remaining_al) if current is not None else Decimal("0"),
        accrual_baseline_months=full_months_between(join_date, new_start),
    )
