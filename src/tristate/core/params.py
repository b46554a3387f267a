"""Construction options for ``stateful``.

``StatefulParams`` validates the options once at construction; ``None``
fields fall back to ``get_settings().engine`` inside the engine.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tristate.runtime.streams import Operator, ops

FlattenFactory = Callable[[Callable[[Any], object]], Operator]


class OverlapPolicy(StrEnum):
    """What happens when a new input arrives while a loader is still running."""
    SWITCH = "switch"  # cancel the running loader, start the new one
    MERGE = "merge"    # run both, results interleave
    CONCAT = "concat"  # queue the new input until the running loader finishes

    @property
    def operator(self) -> FlattenFactory:
        match self:
            case OverlapPolicy.SWITCH:
                return ops.switch_map
            case OverlapPolicy.MERGE:
                return ops.merge_map
            case OverlapPolicy.CONCAT:
                return ops.concat_map


class StatefulParams(BaseModel):
    """Options for a stateful engine.

    Attributes:
        input: Source of loader inputs (stream, async iterable, awaitable or plain value)
        loader: ``loader(input)`` returning a value, awaitable, stream or async iterable
        cache_key: ``cache_key(input)`` returning a string or sequence; empty disables caching
        cache_size: Entries per cache generation
        map_operator: Overlap policy name, or a ``switch_map``-shaped operator factory
        name: Display name used in diagnostics
        log: ``log(event, name, index)`` hook replacing the unhandled-error warning
    """

    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,  # streams and callables
        extra="forbid",
        revalidate_instances="never",
    )

    input: Any = None
    loader: Callable[[Any], Any] | None = Field(default=None, repr=False)
    cache_key: Callable[[Any], Any] | None = Field(default=None, repr=False)
    cache_size: float | None = None
    map_operator: OverlapPolicy | Callable[..., Any] | None = None
    name: str | None = None
    log: Callable[[Any, str, int], Any] | None = Field(default=None, repr=False)

    @field_validator("map_operator", mode="before")
    @classmethod
    def _normalize_policy(cls, v: object) -> object:
        """Accept policy names case-insensitively."""
        return OverlapPolicy(v.lower()) if isinstance(v, str) else v

    def flattener(self, default: str) -> FlattenFactory:
        match self.map_operator:
            case None:
                return OverlapPolicy(default).operator
            case OverlapPolicy() as policy:
                return policy.operator
            case factory:
                return factory
