# io/recorder.py
import json
import queue
import sys
import threading
from dataclasses import asdict
from typing import Protocol

from pool_sim.io.business_events import BizEvent


class Sink(Protocol):
    def write(self, ev: BizEvent) -> None: ...


class JsonlSink:
    def __init__(self, fp=sys.stdout):
        self.fp = fp

    def write(self, ev: BizEvent) -> None:
        self.fp.write(json.dumps(asdict(ev)) + "\n")


class MemorySink:
    def __init__(self):
        self.events: list[BizEvent] = []

    def write(self, ev: BizEvent) -> None:
        self.events.append(ev)

    def named(self, name: str) -> list[BizEvent]:
        return [e for e in self.events if e.name == name]


# Async sink (non-blocking, drops on overflow)
class AsyncSink:
    _STOP = object()

    def __init__(self, sink: Sink, maxsize: int = 10000):
        self.sink, self.q = sink, queue.Queue(maxsize=maxsize)
        self.dropped = 0
        self.failed = 0
        self._t = threading.Thread(target=self._run, daemon=True)
        self._t.start()

    def write(self, ev: BizEvent) -> None:
        try:
            self.q.put_nowait(ev)
        except queue.Full:
            self.dropped += 1  # never block the tick

    def _run(self):
        while True:
            ev = self.q.get()
            if ev is self._STOP:
                return
            try:
                self.sink.write(ev)
            except Exception:
                self.failed += 1

    def stop(self, timeout: float = 1.0):
        self.q.put(self._STOP)
        self._t.join(timeout=timeout)


class Recorder:
    def __init__(self, *sinks: Sink):
        self.sinks = sinks or (JsonlSink(),)
        self.failed = 0

    def emit(self, ev: BizEvent) -> None:
        for s in self.sinks:
            try:
                s.write(ev)
            except Exception:
                self.failed += 1  # a broken sink must not break the tick
