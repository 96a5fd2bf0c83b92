# io/engine_logging.py
import json
import logging
import sys
from dataclasses import asdict

from pool_sim.io.business_events import BizEvent
from pool_sim.io.recorder import Recorder
from pool_sim.sim.clock import TickClock
from pool_sim.sim.hooks import NoopHooks


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        return json.dumps(payload, default=str)


def default_json_logger(name: str = "pool_sim", level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(JsonFormatter())
        logger.addHandler(h)
    logger.setLevel(level)
    return logger


class EngineLogging(NoopHooks):
    """
    One place to shape and emit structured logs for both engine and business events.
    """

    BUSINESS = {
        "PoolActivated",
        "TripMatched",
        "PickupCompleted",
        "PoolRequeued",
        "MatchOrphaned",
    }

    def __init__(
        self,
        run_id: str = "local",
        clock: TickClock | None = None,
        level: str = "INFO",
        debug: bool = False,
        sample_every: int = 1,
        logger: logging.Logger | None = None,
        recorder: Recorder | None = None,
    ):
        self.run_id = run_id
        self.clock = clock
        self.debug = debug
        self.sample_every = max(1, sample_every)
        self.recorder = recorder
        self.log = logger or default_json_logger(level=level)

    def _emit(self, level: int, msg: str, **extra):
        payload = {"run_id": self.run_id}
        if self.clock is not None and "t_ms" in extra:
            payload["wall"] = self.clock.to_wall(extra["t_ms"]).isoformat()
        self.log.log(level, msg, extra={"extra": {**payload, **extra}})

    def _sampled(self, tick: int) -> bool:
        return self.debug and tick % self.sample_every == 0

    # engine lifecycle

    def lifecycle(self, *, status: str, now_ms: int):
        self._emit(logging.INFO, "lifecycle", status=status, t_ms=now_ms)

    def tick_start(self, *, tick: int, now_ms: int):
        if self._sampled(tick):
            self._emit(logging.DEBUG, "tick_start", tick=tick, t_ms=now_ms)

    def tick_end(self, *, tick: int, now_ms: int, wall_ms: float, **counts):
        if self._sampled(tick):
            self._emit(
                logging.DEBUG, "tick_end", tick=tick, t_ms=now_ms, wall_ms=round(wall_ms, 3), **counts
            )

    def error(self, *, reason: str, **kw):
        self._emit(logging.WARNING, "engine_error", reason=reason, **kw)

    # ------------- Business Event Reporting --------------------------

    def biz(self, ev: BizEvent):
        if ev.name in self.BUSINESS:
            data = asdict(ev)
            data.pop("run_id", None)
            self._emit(logging.INFO, ev.name, **data)
        elif self.debug:
            self._emit(logging.DEBUG, ev.name, **asdict(ev))
        if self.recorder:
            self.recorder.emit(ev)
