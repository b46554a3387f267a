"""The stateful engine: source + loader + cache generation -> envelope stream.

Every (latest input, current cache generation) pair is one causal event.
For each event the engine emits ``Loading`` and then exactly one settled
envelope: a cached ``Value`` on a key hit, otherwise whatever the loader
produces, with every failure captured as ``Error``. The resulting stream
never terminates because of a failure.

``reload()`` replaces the cache generation with a fresh, empty one. The
generation stream is part of the trigger, so the swap alone re-evaluates the
latest input; a loader still writing into the replaced generation writes
into an object nothing reads anymore.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, Callable, Mapping
from typing import Any, NamedTuple

from pydantic import ValidationError

from tristate.envelope import LOADING, Error, Input, Value, as_envelope
from tristate.foundation.config import get_settings
from tristate.foundation.errors import ErrorOrigin, InvalidParamsError
from tristate.io.cache import RollingCache, format_key
from tristate.runtime.observability import get_logger
from tristate.runtime.streams import BehaviorSubject, Stream, defer, from_source, of, ops

from .diagnostics import call_log_hook
from .lineage import Lineage
from .node import LogHook, StatefulStream
from .params import FlattenFactory, StatefulParams

_log = get_logger("tristate.engine")

_MISS: Any = object()


class _SourceFailure(NamedTuple):
    exc: BaseException


class _Engine:
    """Builds the raw envelope stream for one ``stateful`` call."""

    __slots__ = ("_source", "_loader", "_cache_key", "_capacity", "_flatten", "_name", "_log", "_generations", "_logger")

    def __init__(
        self,
        source: Stream[Any],
        loader: Callable[[Any], object],
        cache_key: Callable[[Any], object] | None,
        capacity: float,
        flatten: FlattenFactory,
        name: str,
        log: LogHook | None,
    ) -> None:
        self._source = source
        self._loader = loader
        self._cache_key = cache_key
        self._capacity = capacity
        self._flatten = flatten
        self._name = name
        self._log = log
        self._generations: BehaviorSubject[RollingCache[Any]] = BehaviorSubject(RollingCache(capacity))
        self._logger = _log.bind(node=name)

    @property
    def raw(self) -> Stream[Any]:
        return self._trigger().pipe(ops.connect(self._branches))

    def reload(self) -> None:
        self._logger.debug("reload", capacity=self._generations.value.capacity)
        self._generations.next(RollingCache(self._capacity))

    # Trigger: (input, generation) pairs, or a _SourceFailure followed by a
    # fresh subscription to the source on the next reload
    def _trigger(self) -> Stream[Any]:
        return ops.combine_latest(self._source, self._generations).pipe(ops.catch(self._recover_source))

    def _recover_source(self, exc: BaseException) -> Stream[Any]:
        self._logger.debug("source failed", error=repr(exc))
        next_reload = self._generations.pipe(ops.skip(1), ops.take(1))
        return ops.concat(of(_SourceFailure(exc)), next_reload.pipe(ops.switch_map(lambda _: self._trigger())))

    # Loading is subscribed first, so it precedes even a synchronous result
    def _branches(self, shared: Stream[Any]) -> Stream[Any]:
        return ops.merge(
            shared.pipe(ops.filter(lambda event: not isinstance(event, _SourceFailure)), ops.map(lambda _: LOADING)),
            shared.pipe(self._flatten(self._evaluate)),
        )

    def _evaluate(self, event: tuple[Any, RollingCache[Any]] | _SourceFailure) -> Stream[Any]:
        match event:
            case _SourceFailure(exc):
                return of(Error(exc, origin=ErrorOrigin.SOURCE))
            case (value, generation):
                return self._load(value, generation)

    def _load(self, value: Any, generation: RollingCache[Any]) -> Stream[Any]:
        try:
            key = format_key(self._cache_key(value)) if self._cache_key is not None else ""
        except Exception as exc:
            return of(Error(exc, origin=ErrorOrigin.LOADER))

        if self._log is not None:
            call_log_hook(self._log, Input(value), self._name, 0)

        if key and (hit := generation.get(key, _MISS)) is not _MISS:
            self._logger.debug("cache hit", key=key)
            return of(Value(hit))

        def store(envelope: Value[Any] | Error[Any]) -> None:
            if key and isinstance(envelope, Value):
                generation.set(key, envelope.value)

        self._logger.debug("loader start", key=key or None)
        return defer(lambda: self._loader(value)).pipe(
            ops.map(as_envelope),
            ops.tap(store),
            ops.catch(lambda exc: of(Error(exc, origin=ErrorOrigin.LOADER))),
        )


# ─────────────────────────────────────────────────────────────────────────────
# Public constructor
# ─────────────────────────────────────────────────────────────────────────────


def _identity(value: Any) -> Stream[Any]:
    return of(value)


def _coerce_params(params: object, options: dict[str, Any]) -> StatefulParams:
    match params:
        case None:
            fields = options
        case StatefulParams():
            fields = {name: getattr(params, name) for name in params.model_fields_set} | options
        case Mapping():
            fields = {**params, **options}
        case Stream() | AsyncIterable():
            fields = {"input": params, **options}
        case _ if callable(params):
            fields = {"loader": lambda _: params(), **options}
        case _:
            raise InvalidParamsError(f"stateful() expects params, a mapping, a source or a loader, got {type(params).__name__}")
    try:
        return StatefulParams(**fields)
    except ValidationError as e:
        raise InvalidParamsError(f"invalid stateful options: {e}") from e


def stateful(params: StatefulParams | Mapping[str, Any] | object = None, /, **options: Any) -> StatefulStream[Any]:
    """Create a root tri-state stream.

    Args:
        params: ``StatefulParams``, a mapping of options, a bare source
            (stream or async iterable), or a bare zero-argument loader
        **options: Same fields as ``StatefulParams``; override ``params``

    Returns:
        Root ``StatefulStream`` (index 0) with its own lineage

    Raises:
        InvalidParamsError: If the options do not validate

    Example:
        >>> node = stateful(input=BehaviorSubject(1), loader=lambda x: x * 2)
        >>> node.subscribe(print)
        2
    """
    p = _coerce_params(params, options)
    defaults = get_settings().engine
    name = p.name if p.name is not None else defaults.name
    source = from_source(p.input) if p.input is not None else of(True)
    engine = _Engine(
        source=source,
        loader=p.loader or _identity,
        cache_key=p.cache_key,
        capacity=p.cache_size if p.cache_size is not None else defaults.cache_size,
        flatten=p.flattener(defaults.map_operator),
        name=name,
        log=p.log,
    )
    return StatefulStream(engine.raw, name=name, lineage=Lineage(), reload=engine.reload, log=p.log)
