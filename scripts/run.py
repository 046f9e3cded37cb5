"""
@module: scripts.run
@depends: fse, pandas
@exports: run_experiment, main
@data_flow: CSV + TOML config -> DatasetTable -> significance -> candidates -> report files (+ component registry)

Experiment runner for feature-pair significance and model comparison.

Usage:
    python scripts/run.py --data data/pokemon.csv --id-col number --config configs/pokemon.toml
    python scripts/run.py --data data/pokemon.csv --id-col number --label type_1 --trials 20
    python scripts/run.py --data data/pokemon.csv --id-col number --config configs/pokemon.toml \
        --exclude-flag is_legendary --output results/no_legendary
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

import pandas as pd

# Add parent to path for fse imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from fse import (
    AnalysisConfig,
    DatasetTable,
    EvaluationHarness,
    build_backends,
    load_analysis_config,
    load_backend_presets,
    registered_components,
    repeat_evaluation,
    run_analysis,
)

PROJECT_ROOT = Path(__file__).parent.parent
RESULTS_DIR = PROJECT_ROOT / "results"

logger = logging.getLogger(__name__)


def load_table(data_path: Path, id_col: str, exclude_flag: str | None = None) -> DatasetTable:
    """Load a cleaned CSV into a DatasetTable (schema inferred)."""
    logger.info(f"Loading dataset from: {data_path}")
    df = pd.read_csv(data_path)
    logger.info(f"Dataset loaded: {len(df)} rows, {len(df.columns)} columns")

    table = DatasetTable.from_frame(df, id_col=id_col)
    logger.debug(f"Schema: {table!r}")

    if exclude_flag:
        before = len(table)
        table = table.filter(~table.column(exclude_flag).to_numpy(dtype=bool))
        logger.info(f"Excluded {before - len(table)} rows flagged '{exclude_flag}'")
    return table


def run_experiment(
    table: DatasetTable,
    config: AnalysisConfig,
    output_dir: Path,
    n_trials: int = 1,
) -> dict[str, Any]:
    """Run one analysis and write its tables to `output_dir`."""
    start = time.time()
    output_dir.mkdir(parents=True, exist_ok=True)

    components = registered_components()
    for meta in components:
        deps = ", ".join(meta["depends_on"]) or "-"
        logger.debug(f"Component {meta['name']} ({meta['cls']}): {meta['responsibility']} [depends on: {deps}]")
    (output_dir / "components.json").write_text(json.dumps(components, indent=2))

    presets = load_backend_presets(config.evaluation.presets_path)
    backends = build_backends(config.evaluation.backends, presets)
    result = run_analysis(table, config, backends=backends)

    result.significance_frame().to_csv(output_dir / "significance.csv", index=False)
    result.pairwise_frame().to_csv(output_dir / "pairwise.csv", index=False)
    result.candidates_frame().to_csv(output_dir / "candidates.csv", index=False)
    result.report.to_frame().to_csv(output_dir / "report.csv", index=False)
    result.report.confusion_frame().to_csv(output_dir / "confusion.csv", index=False)
    (output_dir / "report.json").write_text(result.report.to_json())

    if n_trials > 1 and result.candidates:
        trials = repeat_evaluation(
            table,
            result.candidates,
            backends,
            config.split,
            n_trials=n_trials,
            label_name=config.label_col,
            harness=EvaluationHarness(config.evaluation.standardize, config.evaluation.n_jobs),
            progress=True,
        )
        trials.summary.to_csv(output_dir / "trials.csv", index=False)
        logger.info(f"Wrote {n_trials}-trial summary")

    best = result.report.best()
    summary = {
        "components": [meta["name"] for meta in components],
        "rows": len(table),
        "label": config.label_col,
        "n_significant_features": sum(r.rejects_null for r in result.significance),
        "n_candidates": len(result.candidates),
        "n_units": len(result.report),
        "n_failed_units": len(result.report.failures()),
        "best_candidate": best.candidate if best else None,
        "best_backend": best.backend if best else None,
        "best_accuracy": best.accuracy if best else None,
        "runtime_seconds": round(time.time() - start, 2),
    }
    for key, value in summary.items():
        logger.info(f"  {key}: {value}")
    return summary


def main() -> int:
    parser = argparse.ArgumentParser(description="Feature-pair significance and model comparison")
    parser.add_argument("--data", type=Path, required=True, help="Cleaned CSV file")
    parser.add_argument("--id-col", required=True, help="Unique identifier column")
    parser.add_argument("--config", type=Path, help="Analysis TOML config")
    parser.add_argument("--label", help="Label column (overrides config)")
    parser.add_argument("--exclude-flag", help="Boolean column; rows where it is True are dropped")
    parser.add_argument("--trials", type=int, default=1, help="Repeated seeded evaluations")
    parser.add_argument("--output", type=Path, default=RESULTS_DIR, help="Output directory")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    if args.config is not None:
        config = load_analysis_config(args.config)
        if args.label:
            config.label_col = args.label
    elif args.label:
        config = AnalysisConfig(label_col=args.label)
    else:
        parser.error("either --config or --label is required")

    table = load_table(args.data, args.id_col, args.exclude_flag)
    run_experiment(table, config, args.output, n_trials=args.trials)
    return 0


if __name__ == "__main__":
    sys.exit(main())
