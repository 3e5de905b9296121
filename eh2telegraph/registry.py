"""The set of collectors the synchroniser can dispatch to."""

from __future__ import annotations

from typing import Any, TypeVar

from .e_hentai import EHCollector
from .exhentai import EXCollector
from .nhentai import NHCollector

C = TypeVar("C")


class Registry:
    """Holds one collector per supported site."""

    def __init__(self, eh: Any, nh: Any, ex: Any) -> None:
        self._collectors = (eh, nh, ex)

    @classmethod
    def new_from_config(cls) -> Registry:
        return cls(
            EHCollector.new_from_config(),
            NHCollector.new_from_config(),
            EXCollector.new_from_config(),
        )

    def get(self, collector_type: type[C]) -> C:
        """Return the registered collector of ``collector_type``."""
        for collector in self._collectors:
            if isinstance(collector, collector_type):
                return collector
        raise LookupError(f"no collector registered for {collector_type.__name__}")

    def __repr__(self) -> str:
        return f"Registry({', '.join(repr(c) for c in self._collectors)})"