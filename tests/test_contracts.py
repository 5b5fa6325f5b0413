"""Contract ledger: selection policy and renewal planning."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import pytest

from ops_portal.common.exceptions import ValidationException
from ops_portal.profiles.contracts import (
    carry_from,
    open_contract,
    plan_renewal,
    select_contract,
)


@dataclass
class FakeContract:
    contract_no: int
    start_date: date
    end_date: Optional[date] = None
    closed_at: Optional[datetime] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)


def _ledger() -> list[FakeContract]:
    closed = datetime(2024, 12, 31, tzinfo=timezone.utc)
    return [
        FakeContract(1, date(2023, 1, 1), date(2023, 12, 31), closed),
        FakeContract(2, date(2024, 1, 1), date(2024, 12, 31), closed),
        FakeContract(3, date(2025, 1, 1)),
    ]


# ═════════════════════════════════════════════════════════════════════
# 1. Selection
# ═════════════════════════════════════════════════════════════════════


class TestSelectContract:

    def test_explicit_number_wins(self):
        ledger = _ledger()
        assert select_contract(ledger, contract_no=1, as_of=date(2025, 3, 1)).contract_no == 1

    def test_explicit_id_wins(self):
        ledger = _ledger()
        assert select_contract(ledger, contract_id=ledger[1].id).contract_no == 2

    def test_unknown_explicit_number_is_none(self):
        assert select_contract(_ledger(), contract_no=9) is None

    def test_as_of_inside_span(self):
        assert select_contract(_ledger(), as_of=date(2024, 6, 1)).contract_no == 2
        assert select_contract(_ledger(), as_of=date(2026, 6, 1)).contract_no == 3

    def test_falls_back_to_current_start(self):
        ledger = _ledger()
        # before every contract: no span matches
        chosen = select_contract(ledger, as_of=date(2022, 1, 1), current_start=date(2024, 1, 1))
        assert chosen.contract_no == 2

    def test_falls_back_to_latest_start(self):
        assert select_contract(_ledger(), as_of=date(2022, 1, 1)).contract_no == 3

    def test_empty_ledger(self):
        assert select_contract([], as_of=date(2024, 1, 1)) is None

    def test_open_contract(self):
        assert open_contract(_ledger()).contract_no == 3
        assert open_contract(_ledger()[:2]) is None


# ═════════════════════════════════════════════════════════════════════
# 2. Renewal planning
# ═════════════════════════════════════════════════════════════════════


class TestPlanRenewal:

    def test_only_debt_is_carried(self):
        assert carry_from(Decimal("-3.5")) == Decimal("-3.5")
        assert carry_from(Decimal("6")) == Decimal("0")
        assert carry_from(Decimal("0")) == Decimal("0")

    def test_plan_closes_current_and_numbers_next(self):
        plan = plan_renewal(
            join_date=date(2022, 7, 1),
            contracts=_ledger(),
            new_start=date(2026, 1, 1),
            new_end=None,
            remaining_al=Decimal("-2"),
        )
        assert plan.close_on == date(2025, 12, 31)
        assert plan.contract_no == 4
        assert plan.start_date == date(2026, 1, 1)
        assert plan.end_date is None
        assert plan.al_carry_in == Decimal("-2")
        # 2022-07-01 .. 2026-01-01
        assert plan.accrual_baseline_months == 42

    def test_surplus_dropped(self):
        plan = plan_renewal(
            join_date=date(2022, 7, 1),
            contracts=_ledger(),
            new_start=date(2026, 1, 1),
            new_end=date(2026, 12, 31),
            remaining_al=Decimal("9.5"),
        )
        assert plan.al_carry_in == Decimal("0")

    def test_start_must_move_forward(self):
        with pytest.raises(ValidationException) as exc_info:
            plan_renewal(
                join_date=date(2022, 7, 1),
                contracts=_ledger(),
                new_start=date(2025, 1, 1),
                new_end=None,
                remaining_al=Decimal("0"),
            )
        assert "start_date" in exc_info.value.errors

    def test_start_before_join_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            plan_renewal(
                join_date=date(2022, 7, 1),
                contracts=[],
                new_start=date(2022, 6, 1),
                new_end=None,
                remaining_al=Decimal("0"),
            )
        assert "join date" in str(exc_info.value.errors)

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationException) as exc_info:
            plan_renewal(
                join_date=date(2022, 7, 1),
                contracts=_ledger(),
                new_start=date(2026, 1, 1),
                new_end=date(2025, 12, 1),
                remaining_al=Decimal("0"),
            )
        assert "end_date" in exc_info.value.errors

    def test_first_contract_has_nothing_to_close(self):
        plan = plan_renewal(
            join_date=date(2022, 7, 1),
            contracts=[],
            new_start=date(2022, 7, 1),
            new_end=None,
            remaining_al=Decimal("-5"),
        )
        assert plan.close_on is None
        assert plan.contract_no == 1
        assert plan.al_carry_in == Decimal("0")
        assert plan.accrual_baseline_months == 0
