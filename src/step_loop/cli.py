from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from rich.console import Console
from rich.table import Table

from step_loop.core.engine import build_engine
from step_loop.errors import InvalidInput, RoutingError
from step_loop.providers.base import RoutingProvider


def _build_router(name: str) -> RoutingProvider:
    if name == "mock":
        from step_loop.providers.mock import MockRoutingProvider

        return MockRoutingProvider()
    if name == "osrm":
        from step_loop.providers.osrm import OSRMRoutingClient

        return OSRMRoutingClient()
    raise ValueError(f"Unknown provider: {name}")


def _save_json(path: Path, obj) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=2, ensure_ascii=False), encoding="utf-8")


def main() -> int:
    ap = argparse.ArgumentParser(description="Generate a closed walking loop of ~N steps.")
    ap.add_argument("--lat", type=float, required=True)
    ap.add_argument("--lng", type=float, required=True)
    ap.add_argument("--steps", type=int, default=10000, help="Target step count")
    ap.add_argument("--provider", default="osrm", choices=["osrm", "mock"])
    ap.add_argument("--seed", type=int, default=None, help="Seed for reproducible waypoints")
    ap.add_argument("--out", default=None, help="Write the route JSON to this path")
    ap.add_argument("--debug", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s [cli] %(levelname)s %(name)s %(message)s",
    )

    console = Console()
    engine = build_engine(router=_build_router(args.provider))

    try:
        result = engine.generate(args.lat, args.lng, args.steps, seed=args.seed)
    except InvalidInput as e:
        console.print(f"[red]Invalid input:[/red] {e}")
        return 2
    except RoutingError as e:
        console.print(f"[red]Routing failed:[/red] {e}")
        return 1

    table = Table(title=f"Step Loop — {args.steps} steps from ({args.lat:.5f}, {args.lng:.5f})")
    table.add_column("Distance m")
    table.add_column("Duration min")
    table.add_column("Steps")
    table.add_column("Quality")
    table.add_column("Score")
    table.add_column("Attempts")
    table.add_column("Waypoints")
    table.add_column("Turns")
    table.add_row(
        str(result.distance),
        f"{result.duration / 60:.0f}",
        str(result.steps_estimate),
        result.quality,
        "" if result.score is None else f"{result.score:.2f}",
        str(result.attempts),
        str(len(result.waypoints)),
        str(len(result.maneuvers)),
    )
    console.print(table)

    if args.debug and result.maneuvers:
        turns = Table(title="Turns")
        turns.add_column("#")
        turns.add_column("Lat")
        turns.add_column("Lng")
        turns.add_column("Instruction")
        for i, m in enumerate(result.maneuvers, 1):
            turns.add_row(str(i), f"{m.lat:.5f}", f"{m.lng:.5f}", m.instruction)
        console.print(turns)

    if args.out:
        out = Path(args.out)
        _save_json(out, result.model_dump())
        console.print(f"Saved: {out.resolve()}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
