from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class User:
    """Snapshot of a GitHub identity taken at login time."""

    id: int
    login: str
    name: str
    avatar_url: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Session:
    user: User
    token: str
