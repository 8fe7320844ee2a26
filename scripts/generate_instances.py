#!/usr/bin/env python3
import argparse
import json
import random
from pathlib import Path
from typing import List, Optional

from simplex_optimizer.schemas import Constraint, LPModel, SignRestriction, Variable


def generate_random_lp(
    num_vars: int,
    num_constraints: int,
    seed: Optional[int] = None,
    sign: SignRestriction = "+",
    with_cover_row: bool = False,
) -> LPModel:
    """Feasible, bounded maximisation: positive <= rows, optionally one sum(x) >= 0.25 row."""
    rng = random.Random(seed)
    variables = [
        Variable(name=f"x{i + 1}", index=i, coef=round(rng.uniform(1.0, 4.0), 3), sign=sign)
        for i in range(num_vars)
    ]
    constraints: List[Constraint] = []
    for j in range(num_constraints):
        constraints.append(
            Constraint(
                name=f"c{j + 1}",
                coefficients={f"x{i + 1}": round(rng.uniform(0.5, 5.0), 3) for i in range(num_vars)},
                cmp="<=",
                rhs=round(rng.uniform(num_vars * 2.0, num_vars * 6.0), 3),
            )
        )
    if with_cover_row:
        constraints.append(
            Constraint(
                name="cover",
                coefficients={f"x{i + 1}": 1.0 for i in range(num_vars)},
                cmp=">=",
                rhs=0.25,
            )
        )
    return LPModel(name="random-lp", sense="max", variables=variables, constraints=constraints)


def generate_random_knapsack(num_items: int, seed: Optional[int] = None) -> LPModel:
    rng = random.Random(seed)
    weights = [rng.randint(1, 10) for _ in range(num_items)]
    variables = [
        Variable(name=f"x{i + 1}", index=i, coef=float(rng.randint(1, 15)), sign="bin")
        for i in range(num_items)
    ]
    capacity = max(1, sum(weights) // 2)
    constraints = [
        Constraint(
            name="capacity",
            coefficients={f"x{i + 1}": float(w) for i, w in enumerate(weights)},
            cmp="<=",
            rhs=float(capacity),
        )
    ]
    return LPModel(name="random-knapsack", sense="max", variables=variables, constraints=constraints)


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate random feasible LP/IP instances.")
    parser.add_argument("--kind", choices=["lp", "ip", "knapsack"], default="lp", help="Instance family")
    parser.add_argument("--vars", type=int, default=3, help="Number of variables (items for knapsack)")
    parser.add_argument("--constraints", type=int, default=3, help="Number of constraints")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--count", type=int, default=1, help="Number of instances")
    parser.add_argument("--out", type=Path, default=None, help="Optional output file")
    args = parser.parse_args()

    instances = []
    for idx in range(args.count):
        seed = (args.seed or 0) + idx
        if args.kind == "knapsack":
            instances.append(generate_random_knapsack(args.vars, seed))
        else:
            sign = "int" if args.kind == "ip" else "+"
            instances.append(generate_random_lp(args.vars, args.constraints, seed, sign=sign))
    payload = [instance.model_dump() for instance in instances]

    if args.out:
        Path(args.out).write_text(json.dumps(payload, indent=2))
    else:
        print(json.dumps(payload, indent=2))


if __name__ == "__main__":
    main()
