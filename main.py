# main.py
"""Run the FixedWindow and FlexibleWindow strategies side by side and report final metrics."""
import argparse
import json
from pathlib import Path

from pool_sim.app.compare import Comparison
from pool_sim.config.models import ScenarioModel
from pool_sim.io.recorder import AsyncSink, JsonlSink


def load_scenario(path: Path | None, seed: int | None) -> ScenarioModel:
    data = json.loads(path.read_text()) if path else {}
    if seed is not None:
        data["seed"] = seed
    return ScenarioModel.model_validate(data)


def save_results(output_path: Path | None, data: dict) -> None:
    if not output_path:
        return
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(data, indent=2))


def run(scenario: ScenarioModel, ticks: int, *, use_logging: bool = False, sinks=None) -> dict:
    comparison = Comparison(scenario, use_logging=use_logging, sinks=sinks)
    try:
        comparison.begin()
        comparison.run(ticks)
        return {
            "scenario": scenario.name,
            "seed": scenario.seed,
            "ticks": ticks,
            "simulated_s": ticks * scenario.engine.tick_ms / 1000,
            "final_metrics": comparison.report(),
        }
    finally:
        comparison.close()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("config", type=Path, nargs="?", help="Optional JSON scenario file")
    parser.add_argument("--ticks", type=int, default=1200, help="Ticks to simulate (default: 5 simulated minutes)")
    parser.add_argument("--seed", type=int, help="Override the scenario seed")
    parser.add_argument("--output", type=Path, help="Optional file path to write results as JSON")
    parser.add_argument("--log", action="store_true", help="Emit structured JSON logs to stdout")
    parser.add_argument("--events", type=Path, help="Optional JSONL file for business events")
    args = parser.parse_args()

    scenario = load_scenario(args.config, args.seed)
    if args.events and not args.log:
        # business events still need the logging hooks; keep stdout quiet
        scenario = scenario.model_copy(update={"log": scenario.log.model_copy(update={"level": "WARNING"})})

    if args.events:
        args.events.parent.mkdir(parents=True, exist_ok=True)
        with args.events.open("w") as fp:
            sink = AsyncSink(JsonlSink(fp))
            try:
                results = run(scenario, args.ticks, use_logging=True, sinks=[sink])
            finally:
                sink.stop(timeout=10.0)
        if sink.dropped or sink.failed:
            print(f"Events: {sink.dropped} dropped, {sink.failed} failed to write")
    else:
        results = run(scenario, args.ticks, use_logging=args.log)
    save_results(args.output, results)

    print(f"Scenario: {results['scenario']} (seed {results['seed']})")
    print(f"Duration: {results['ticks']} ticks, {results['simulated_s']:.0f}s simulated")
    for strategy, metrics in results["final_metrics"].items():
        print(f"{strategy}:")
        for key, value in metrics.items():
            print(f"  {key}: {value}")
    if args.output:
        print(f"Saved metrics to {args.output}")


if __name__ == "__main__":
    main()
