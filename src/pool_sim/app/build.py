# pool_sim/app/build.py
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from pool_sim.app.engine import Simulation
from pool_sim.app.protocols import CostOracle
from pool_sim.config.models import ScenarioModel
from pool_sim.io.engine_logging import EngineLogging  # JSON logs
from pool_sim.io.recorder import JsonlSink, Recorder, Sink
from pool_sim.services.cost_oracle import NoisyDistanceOracle, OracleBridge
from pool_sim.sim.hooks import NoopHooks
from pool_sim.sim.rng import RNGRegistry


@dataclass
class App:
    simulation: Simulation
    rng: RNGRegistry
    recorder: Recorder
    oracle: OracleBridge | None

    def close(self) -> None:
        if self.oracle:
            self.oracle.close()


def build(
    cfg: ScenarioModel | Mapping,
    *,
    worker: int = 0,
    use_logging: bool = True,
    oracle: CostOracle | None = None,
    sinks: Sequence[Sink] | None = None,
) -> App:
    # 0) Validate config
    model = cfg if isinstance(cfg, ScenarioModel) else ScenarioModel.model_validate(cfg)

    # 1) RNG
    rng_registry = RNGRegistry(model.seed, scenario=model.name, worker=worker)

    # 2) Recorder for analytics
    recorder = Recorder(*(sinks if sinks is not None else [JsonlSink()]))

    # 3) Optional cost oracle; an explicit one wins over the configured local oracle
    if oracle is None and model.oracle.enabled:
        oracle = NoisyDistanceOracle(rng_registry, spread=model.oracle.spread)
    bridge = OracleBridge(oracle, maxsize=model.oracle.maxsize) if oracle is not None else None

    # 4) Simulation (hooks need its clock)
    sim = Simulation(
        model.params,
        rng=rng_registry,
        engine=model.engine,
        oracle=bridge,
        run_id=model.run_id,
    )
    if use_logging:
        sim.hooks = EngineLogging(
            run_id=model.run_id,
            recorder=recorder,
            clock=sim.clock,
            level=model.log.level,
            debug=model.log.debug,
            sample_every=model.log.sample_every,
        )
    else:
        sim.hooks = NoopHooks()

    return App(sim, rng_registry, recorder, bridge)
