# sim/rng.py
from __future__ import annotations

from dataclasses import dataclass
from zlib import crc32

import numpy as np


def _u32(x: int) -> int:
    return int(x & 0xFFFFFFFF)


def _crc32_u32(s: str) -> int:
    return _u32(crc32(s.encode("utf-8")))


@dataclass(frozen=True)
class RNGKey:
    """Named stream; `tag` is the name normalized to u32."""

    stream: str
    tag: int

    @classmethod
    def named(cls, stream: str) -> RNGKey:
        return cls(stream=stream, tag=_crc32_u32(stream))


class RNGRegistry:
    """
    Deterministic registry of numpy.random.Generator streams.
    Derivation path: [master_seed, scenario, worker, key.tag]

    Streams are independent of the order in which they are first requested,
    so adding a consumer never shifts the draws of another one.
    """

    def __init__(self, master_seed: int, *, scenario: str | int = 0, worker: int = 0):
        self.master_seed = _u32(master_seed)
        self.scenario_tag = _crc32_u32(str(scenario))
        self.worker = _u32(worker)
        self._cache: dict[RNGKey, np.random.Generator] = {}

    def generator(self, key: RNGKey) -> np.random.Generator:
        gen = self._cache.get(key)
        if gen is None:
            ss = np.random.SeedSequence(
                entropy=[self.master_seed, self.scenario_tag, self.worker, key.tag]
            )
            gen = np.random.Generator(np.random.PCG64(ss))
            self._cache[key] = gen
        return gen

    def stream(self, name: str) -> np.random.Generator:
        return self.generator(RNGKey.named(name))

    def reset(self) -> None:
        """Forget every stream; the next request restarts it from its seed."""
        self._cache.clear()
