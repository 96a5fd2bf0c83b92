# pool_sim/app/compare.py
from collections.abc import Mapping
from dataclasses import asdict

from pool_sim.app.build import App, build
from pool_sim.app.snapshot import Snapshot
from pool_sim.config.models import PoolingStrategy, ScenarioModel, SimulationParams

STRATEGIES: tuple[PoolingStrategy, ...] = ("FixedWindow", "FlexibleWindow")


class Comparison:
    """
    The same scenario run once per pooling strategy, in lockstep.

    Both runs share the master seed and scenario name, so they see the same
    demand stream; any metric difference comes from the strategy alone.
    """

    def __init__(self, cfg: ScenarioModel | Mapping, *, use_logging: bool = True, **build_kw):
        model = cfg if isinstance(cfg, ScenarioModel) else ScenarioModel.model_validate(cfg)
        self.apps: dict[str, App] = {}
        for strategy in STRATEGIES:
            variant = model.model_copy(
                update={
                    "run_id": f"{model.run_id}-{strategy}",
                    "params": model.params.model_copy(update={"pooling_strategy": strategy}),
                }
            )
            self.apps[strategy] = build(variant, use_logging=use_logging, **build_kw)
        self.cfg = model.engine

    @property
    def simulations(self):
        return {name: app.simulation for name, app in self.apps.items()}

    @property
    def params(self) -> SimulationParams:
        return self.apps[STRATEGIES[0]].simulation.params

    @property
    def status(self) -> str:
        return self.apps[STRATEGIES[0]].simulation.status

    @property
    def snapshot(self) -> dict[str, Snapshot]:
        return {name: sim.snapshot for name, sim in self.simulations.items()}

    def begin(self) -> None:
        for sim in self.simulations.values():
            sim.begin()

    def halt(self) -> None:
        for sim in self.simulations.values():
            sim.halt()

    def reset(self) -> None:
        for sim in self.simulations.values():
            sim.reset()

    def update_params(self, params: SimulationParams) -> None:
        # each side keeps its own strategy
        for name, sim in self.simulations.items():
            sim.update_params(params.model_copy(update={"pooling_strategy": name}))

    def step(self) -> dict[str, Snapshot]:
        return {name: sim.step() for name, sim in self.simulations.items()}

    def run(self, ticks: int) -> dict[str, Snapshot]:
        for _ in range(ticks):
            self.step()
        return self.snapshot

    def report(self) -> dict[str, dict]:
        return {name: asdict(sim.snapshot.metrics) for name, sim in self.simulations.items()}

    def close(self) -> None:
        for app in self.apps.values():
            app.close()
