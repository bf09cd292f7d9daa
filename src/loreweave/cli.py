"""Command line entry point for a single world run."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from loreweave import config
from loreweave.domain.loader import deep_merge, load_domain, load_overrides
from loreweave.engine import WorldEngine
from loreweave.errors import ConfigError
from loreweave.naming import SyllableNameGenerator
from loreweave.persistence.db import RunStore
from loreweave.util.rng import Rng

logger = logging.getLogger("loreweave")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="loreweave", description="Grow a seeded world and export it.")
    parser.add_argument("--run-id", type=str, default=None)
    parser.add_argument("--domain", type=str, default=None, help="Domain YAML/JSON; defaults to the bundled colonies.")
    parser.add_argument("--config", type=str, default=None, help="Parameter overrides merged over the domain.")
    parser.add_argument("--seed", type=int, default=config.SEED)
    parser.add_argument("--out", type=str, default=None, help="Directory for world.json and statistics.json.")
    parser.add_argument("--db", type=str, default=None, help="SQLite file that keeps finished runs.")
    parser.add_argument("--max-ticks", type=int, default=None)
    parser.add_argument("--max-epochs", type=int, default=None)
    parser.add_argument("--plain-names", action="store_true", help="Skip the name generator.")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true")
    verbosity.add_argument("-q", "--quiet", action="store_true")
    return parser


def _log_level(args: argparse.Namespace) -> int:
    if args.verbose:
        return logging.DEBUG
    if args.quiet:
        return logging.WARNING
    return logging.INFO


def _engine_overrides(args: argparse.Namespace) -> dict:
    engine: dict = {}
    if args.max_ticks is not None:
        engine["maxTicks"] = args.max_ticks
    if args.max_epochs is not None:
        engine["maxEpochs"] = args.max_epochs
    return {"engine": engine} if engine else {}


def _write_json(path: Path, payload: dict) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=_log_level(args), format="%(levelname)s %(name)s: %(message)s")

    rng = Rng(args.seed)
    run_id = args.run_id or f"run-{args.seed}"
    try:
        overrides = deep_merge(load_overrides(args.config), _engine_overrides(args))
        domain = load_domain(args.domain, overrides)
        names = None if args.plain_names else SyllableNameGenerator(rng.fork("names"))
        engine = WorldEngine(domain, rng=rng, name_generator=names)
        world = engine.run()
    except ConfigError as exc:
        print(f"Configuration error in {exc.field_path}: {exc.message}", file=sys.stderr)
        return 2

    statistics = engine.export_statistics()
    fitness = statistics["fitnessMetrics"]
    print(
        f"{run_id}: {world['metadata']['entityCount']} entities, "
        f"{world['metadata']['relationshipCount']} relationships, "
        f"era {world['metadata']['currentEra']}, fitness {fitness['overallFitness']:.3f}"
    )

    if args.out:
        out_dir = Path(args.out)
        out_dir.mkdir(parents=True, exist_ok=True)
        _write_json(out_dir / "world.json", world)
        _write_json(out_dir / "statistics.json", statistics)
        print(f"Wrote world export to {out_dir}")
    if args.db:
        store = RunStore(Path(args.db))
        try:
            store.save_run(run_id, args.seed, domain.name, world, statistics)
        finally:
            store.close()
        print(f"Saved run {run_id} to {args.db}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
