import argparse
import json
import logging
import sys
from typing import List, Optional

import numpy as np
import pandas as pd
import requests

from .data.catalogue import catalogue_summary, items_from_fpl, load_catalogue
from .data.fpl_api import cached_bootstrap
from .features.builder import BuildResult, build_squad, deadline_predicate
from .features.placement import FORMATIONS, place_lineup
from .features.memory import load_memory, save_memory
from .utils.errors import AttemptExhausted, CatalogueError, ConfigError, Infeasible, SearchCancelled, SquadBuilderError
from .utils.rules import (
    ATTEMPTS, DEFAULT_TARGETS, LEFTOVER_MAX, MEMORY_SIZE, REQUIRED_COUNTS, ROLE_ORDER, ROLE_TOLERANCE,
    BuilderConfig, Item, parse_role_map,
)

log = logging.getLogger("squad.cli")

EXIT_CONFIG = 2
EXIT_INFEASIBLE = 3
EXIT_EXHAUSTED = 4
EXIT_CANCELLED = 5
EXIT_CATALOGUE = 6


def _fmt_map(m) -> str:
    return ",".join(f"{k}:{v:g}" for k, v in m.items())


def load_items(catalogue: Optional[str], fpl_cache: str) -> List[Item]:
    if catalogue:
        return load_catalogue(catalogue)
    print("Fetching FPL data…")
    return items_from_fpl(cached_bootstrap(fpl_cache))


def print_result(res: BuildResult) -> None:
    pretty = res.to_frame()[["role", "name", "team", "price", "cum_spend"]]
    print(pretty.to_string(index=False))

    rows = []
    for r in ROLE_ORDER:
        b = res.bands[r]
        spend = res.per_role_spend[r]
        rows.append({"role": r, "spend": spend, "lo": b.lo, "hi": b.hi, "ok": b.contains(spend)})
    print()
    print(pd.DataFrame(rows).to_string(index=False))
    print(f"\nSpent {res.total_spend} of {res.budget} (left {res.leftover}) • status: {res.status}")
    if not res.accepted:
        print("WARNING: best effort only, role bands or leftover target not fully met."
              if not res.feasible else
              "WARNING: this squad repeats a recent proposal.")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Budget-balanced squad builder")
    parser.add_argument("--budget", type=int, required=True, help="Total credits (e.g., 500)")
    parser.add_argument("--catalogue", type=str, default="", help="CSV/XLSX listing; live FPL data if omitted")
    parser.add_argument("--fpl-cache", type=str, default="fpl_bootstrap.json", help="Disk cache for FPL data")
    parser.add_argument("--targets", type=str, default=_fmt_map(DEFAULT_TARGETS), help='Budget %% per role as "GK:9,DEF:15,MID:30,FWD:46"')
    parser.add_argument("--counts", type=str, default=_fmt_map(REQUIRED_COUNTS), help='Players per role as "GK:3,DEF:8,MID:8,FWD:6"')
    parser.add_argument("--squad-size", type=int, default=None, help="Declared squad size (default: sum of --counts)")
    parser.add_argument("--tolerance", type=float, default=ROLE_TOLERANCE, help="± fraction around each role target")
    parser.add_argument("--leftover", type=int, default=LEFTOVER_MAX, help="Max credits left unspent")
    parser.add_argument("--attempts", type=int, default=ATTEMPTS, help="Independent attempts")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible squads")
    parser.add_argument("--timeout", type=float, default=None, help="Give up after this many seconds")
    parser.add_argument("--strict", action="store_true", help="Fail instead of returning a best-effort squad")
    parser.add_argument("--formation", type=str, default="", choices=("",) + FORMATIONS, help="Also place an XI")
    parser.add_argument("--memory", type=str, default="", help="JSON file remembering recent proposals")
    parser.add_argument("--summary", action="store_true", help="Print the catalogue summary and exit")
    parser.add_argument("--out", type=str, default="squad.json", help="Where to save the JSON result")
    parser.add_argument("-v", "--verbose", action="store_true")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    try:
        counts = {k: int(v) for k, v in parse_role_map(args.counts).items()}
        config = BuilderConfig(
            budget=args.budget,
            role_requirements=counts,
            role_targets=parse_role_map(args.targets, cast=float),
            squad_size=args.squad_size if args.squad_size is not None else sum(counts.values()),
            tolerance=args.tolerance,
            leftover_tolerance=args.leftover,
            attempts=args.attempts,
        ).validate()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    try:
        items = load_items(args.catalogue, args.fpl_cache)
    except (CatalogueError, OSError, requests.RequestException) as e:
        print(f"Catalogue error: {e}", file=sys.stderr)
        return EXIT_CATALOGUE
    if args.summary:
        print(catalogue_summary(items).to_string(index=False))
        return 0

    try:
        memory = load_memory(args.memory, MEMORY_SIZE) if args.memory else None
    except (OSError, ValueError) as e:
        print(f"Cannot read proposal memory {args.memory}: {e}", file=sys.stderr)
        return EXIT_CONFIG

    print("Building squad…")
    try:
        res = build_squad(
            items, config, memory=memory, rng=np.random.default_rng(args.seed),
            allow_degraded=not args.strict, should_stop=deadline_predicate(args.timeout),
        )
    except Infeasible as e:
        print(f"No squad: {e}", file=sys.stderr)
        return EXIT_INFEASIBLE
    except AttemptExhausted as e:
        print(f"No compliant squad: {e}", file=sys.stderr)
        return EXIT_EXHAUSTED
    except SearchCancelled as e:
        print(f"Stopped: {e}", file=sys.stderr)
        return EXIT_CANCELLED
    except SquadBuilderError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    print_result(res)
    payload = res.to_dict()
    if args.formation:
        lineup = place_lineup(res.squad, args.formation)
        payload["lineup"] = lineup.to_dict()
        print(f"\nXI ({args.formation}):")
        for number, p in lineup.slots:
            print(f"  {number:>2}  {p.role:<3} {p.name} ({p.team})")
        print("Bench: " + ", ".join(p.name for p in lineup.bench))

    if memory is not None:
        save_memory(args.memory, memory)

    # Also drop a machine-friendly JSON file
    with open(args.out, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    print(f"\nSaved JSON to {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
