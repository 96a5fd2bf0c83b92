# sim/hooks.py
from typing import Protocol

from pool_sim.io.business_events import BizEvent


class EngineHooks(Protocol):
    def lifecycle(self, *, status: str, now_ms: int): ...
    def tick_start(self, *, tick: int, now_ms: int): ...
    def tick_end(self, *, tick: int, now_ms: int, wall_ms: float, **counts): ...
    def biz(self, ev: BizEvent): ...
    def error(self, *, reason: str, **kw): ...


class NoopHooks:
    def lifecycle(self, **_):
        pass

    def tick_start(self, **_):
        pass

    def tick_end(self, **_):
        pass

    def biz(self, *_, **__):
        pass

    def error(self, *_, **__):
        pass
