from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from loreweave import config
from loreweave.domain.loader import load_domain
from loreweave.engine import WorldEngine
from loreweave.export import dump_world
from loreweave.naming import SyllableNameGenerator
from loreweave.util.rng import Rng


def main() -> None:
    parser = argparse.ArgumentParser(description="Dump a seeded world as plain text.")
    parser.add_argument("--seed", type=int, default=config.SEED)
    parser.add_argument("--domain", type=str, default=None)
    parser.add_argument("--max-ticks", type=int, default=100)
    parser.add_argument("--history", type=int, default=20)
    parser.add_argument("--out", type=str, default=None)
    args = parser.parse_args()

    rng = Rng(args.seed)
    domain = load_domain(args.domain, {"engine": {"maxTicks": args.max_ticks}})
    engine = WorldEngine(domain, rng=rng, name_generator=SyllableNameGenerator(rng.fork("names")))
    engine.run()
    output = dump_world(engine.state, history_limit=args.history)

    if args.out:
        with open(args.out, "w", encoding="utf-8") as handle:
            handle.write(output)
        print(f"Wrote world dump to {args.out}")
        return

    print(output)


if __name__ == "__main__":
    main()
