# pool_sim/app/control.py
import asyncio
import contextlib
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from pydantic import ValidationError

from pool_sim.config.models import EngineModel, SimulationParams

ParamsUpdate = Mapping[str, Any] | Callable[[SimulationParams], SimulationParams | Mapping[str, Any]]

# the pool grid is fixed for the lifetime of a run
FROZEN_WHILE_RUNNING = ("grid_resolution", "area_dimensions")


class ParamsRejected(ValueError):
    pass


class Steppable(Protocol):
    params: SimulationParams
    status: str
    cfg: EngineModel

    @property
    def snapshot(self) -> Any: ...
    def begin(self) -> None: ...
    def halt(self) -> None: ...
    def reset(self) -> None: ...
    def step(self) -> Any: ...
    def update_params(self, params: SimulationParams) -> None: ...


def _merge(base: dict, update: Mapping) -> dict:
    out = dict(base)
    for k, v in update.items():
        if isinstance(v, Mapping) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def apply_update(
    params: SimulationParams, update: ParamsUpdate, *, running: bool = False, tick_ms: int | None = None
) -> SimulationParams:
    """Validate `update` against `params`; raises ParamsRejected and never returns a partial result."""
    if callable(update):
        try:
            result = update(params)
        except Exception as exc:
            raise ParamsRejected(f"params update failed: {exc!r}") from exc
    else:
        result = update

    if isinstance(result, SimulationParams):
        data = result.model_dump()
    elif isinstance(result, Mapping):
        data = _merge(params.model_dump(), result)
    else:
        raise ParamsRejected(f"params update must be a mapping or SimulationParams, got {type(result).__name__}")

    try:
        new = SimulationParams.model_validate(data)
    except ValidationError as exc:
        raise ParamsRejected(str(exc)) from exc

    if running:
        for field in FROZEN_WHILE_RUNNING:
            if getattr(new, field) != getattr(params, field):
                raise ParamsRejected(f"{field} cannot change while the simulation is running")
    if tick_ms is not None and new.pooling_time * 1000 < tick_ms:
        raise ParamsRejected(f"pooling_time {new.pooling_time}s is shorter than one tick ({tick_ms} ms)")
    return new


class SimulationManager:
    """
    Drives a simulation in real time from an asyncio task.

    One lock serialises ticks and control operations, so a control call
    always lands between two ticks and never inside one.
    """

    def __init__(self, simulation: Steppable, tick_interval: float | None = None):
        self.simulation = simulation
        self.tick_interval = tick_interval if tick_interval is not None else simulation.cfg.tick_ms / 1000
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None
        self._subscribers: list[Callable[[Any], None]] = []

    @property
    def status(self) -> str:
        return self.simulation.status

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, callback: Callable[[Any], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, snapshot) -> None:
        for cb in list(self._subscribers):
            cb(snapshot)

    async def start(self):
        async with self._lock:
            self.simulation.begin()
            snap = self.simulation.snapshot
            if not self.running:
                self._task = asyncio.create_task(self._run())
        self._publish(snap)
        return snap

    async def pause(self):
        await self._stop_task()
        async with self._lock:
            self.simulation.halt()
            snap = self.simulation.snapshot
        self._publish(snap)
        return snap

    async def reset(self):
        await self._stop_task()
        async with self._lock:
            self.simulation.reset()
            snap = self.simulation.snapshot
        self._publish(snap)
        return snap

    async def set_params(self, update: ParamsUpdate) -> SimulationParams:
        async with self._lock:
            params = apply_update(
                self.simulation.params,
                update,
                running=self.simulation.status == "running",
                tick_ms=self.simulation.cfg.tick_ms,
            )
            self.simulation.update_params(params)
        return params

    async def step_once(self):
        """Advance exactly one tick regardless of the run loop (scripted scenarios)."""
        async with self._lock:
            snap = self.simulation.step()
        self._publish(snap)
        return snap

    async def _run(self):
        while True:
            async with self._lock:
                snap = self.simulation.step()
            self._publish(snap)
            await asyncio.sleep(self.tick_interval)

    async def _stop_task(self):
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
