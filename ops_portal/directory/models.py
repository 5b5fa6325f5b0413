"""Employee directory ORM model: read-only mirror of the HR directory."""

from __future__ import annotations

from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from ops_portal.database import Base


class EmployeeDirectory(Base):
    __tablename__ = "employee_directory"

    employee_id: Mapped[str] = mapped_column(sa.String(64), primary_key=True)
    login_id: Mapped[Optional[str]] = mapped_column(sa.String(100), index=True)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    department: Mapped[Optional[str]] = mapped_column(sa.String(100))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, server_default=sa.text("TRUE"))
