"""Principal for requests whose identity was established upstream."""

from __future__ import annotations

from dataclasses import dataclass

from .core.enums import RoleName


@dataclass(frozen=True)
class Actor:
    """The authenticated caller: a user booking spots or a company owning lots."""

    id: str
    role: RoleName = RoleName.USER

    @property
    def is_company(self) -> bool:
        return self.role == RoleName.COMPANY
