"""Shared dataclasses for service layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

Kind = Literal["movie", "series"]
ParamValue = Union[str, int, bool]


@dataclass(frozen=True, slots=True)
class BrowseQuery:
    """Inbound browse parameters after adapting either naming convention."""

    kind: Kind
    category: str
    refinement: str | None = None
    limit: int = 20
    start: int = 0


@dataclass(frozen=True, slots=True)
class UpstreamStrategy:
    """TMDb endpoint plus ordered query parameters for one browse request."""

    endpoint: str
    params: tuple[tuple[str, ParamValue], ...] = ()

    def as_params(self) -> dict[str, ParamValue]:
        return dict(self.params)

    def with_params(self, **extra: ParamValue | None) -> UpstreamStrategy:
        """Return a copy with ``extra`` merged in and ``None`` values dropped."""

        merged: dict[str, ParamValue | None] = dict(self.params)
        merged.update(extra)
        cleaned = tuple((key, value) for key, value in merged.items() if value is not None)
        return UpstreamStrategy(endpoint=self.endpoint, params=cleaned)


@dataclass(slots=True)
class NormalizedItem:
    id: str
    title: str
    poster: str = ""
    rate: str = ""
    year: str = ""


@dataclass(slots=True)
class BrowseResult:
    items: list[NormalizedItem] = field(default_factory=list)
    code: int = 200
    message: str = "success"
