#!/usr/bin/env python3
import json
from pathlib import Path

from simplex_optimizer import LPModel, SimplexEngine
from scripts.generate_instances import generate_random_knapsack, generate_random_lp


def load_example(name: str) -> LPModel:
    path = Path(__file__).resolve().parent.parent / "examples" / name
    return LPModel.model_validate(json.loads(path.read_text()))


def main() -> None:
    engine = SimplexEngine()
    cases = [
        ("examples/scenario1_lp.json", load_example("scenario1_lp.json")),
        ("examples/scenario2_binary.json", load_example("scenario2_binary.json")),
        ("examples/scenario3_knapsack.json", load_example("scenario3_knapsack.json")),
    ]
    for seed in range(3):
        cases.append((f"random-lp-{seed}", generate_random_lp(3, 3, seed, with_cover_row=True)))
        cases.append((f"random-ip-{seed}", generate_random_lp(3, 3, seed, sign="int")))
        cases.append((f"random-knapsack-{seed}", generate_random_knapsack(8, seed)))

    print("name,algorithm,status,objective,iterations,time_ms")
    for name, model in cases:
        for algorithm in engine.available_algorithms:
            result = engine.solve(model, algorithm)
            if result.status == "error" and "does not support" in result.message:
                continue
            print(
                f"{name},{algorithm},{result.status},{result.objective_value},"
                f"{result.iteration_count},{result.execution_time_ms:.2f}"
            )


if __name__ == "__main__":
    main()
