# src/neurodrill/__main__.py
from __future__ import annotations

# General imports (stdlib)
import argparse
import sys
from pathlib import Path

# Local imports
from .config import make_config
from .core import DrilldownPipeline
from .exceptions import NeurodrillError
from .logging_utils import setup_logging


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(
        prog="neurodrill",
        description="Aggregate neuropsych scores by domain and export drilldown chart data.",
    )
    ap.add_argument("domains", nargs="+", help="Domain names or registry keys (e.g. Memory adhd)")
    ap.add_argument("--dir", type=Path, default=Path("."), help="Patient workspace directory")
    ap.add_argument("--age-group", default="adult", help="adult | child")
    ap.add_argument("--patient", default=None, help="Patient name used as chart title")
    ap.add_argument("--preset", default=None, help="Hierarchy preset (default: clinical)")
    ap.add_argument("--log-level", default=None, help="Logging level (default: $LOG_LEVEL or INFO)")
    args = ap.parse_args(argv)

    setup_logging(args.log_level)

    try:
        cfg = make_config(directory=args.dir, preset=args.preset)
        outputs = DrilldownPipeline(cfg).run_domains(args.domains, args.age_group, patient=args.patient)
    except NeurodrillError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    for out in outputs:
        for kind, path in out.files.items():
            print(f"{out.resolved.pheno}\t{kind}\t{path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
