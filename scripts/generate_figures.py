#!/usr/bin/env python3
"""
@module: scripts.generate_figures
@depends: results/{significance,report,confusion}.csv
@exports: plot_significance, plot_accuracy, plot_confusion, write_summary_table
@data_flow: run outputs (CSV) -> matplotlib figures -> PDF/PNG

Figures for one analysis run written by scripts/run.py:
- Significance: -log10 omnibus p-value per numeric attribute
- Accuracy: held-out accuracy per (candidate, backend) against the majority baseline
- Confusion: confusion matrix of the best evaluation unit

Usage:
    python scripts/generate_figures.py --results results/pokemon
"""

from __future__ import annotations

import argparse
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402

plt.style.use('seaborn-v0_8-whitegrid')
plt.rcParams.update({
    'font.family': 'serif',
    'font.size': 10,
    'axes.labelsize': 11,
    'axes.titlesize': 12,
    'xtick.labelsize': 9,
    'ytick.labelsize': 9,
    'legend.fontsize': 9,
    'figure.dpi': 150,
    'savefig.dpi': 300,
    'savefig.bbox': 'tight',
})

COLORS = {
    'significant': '#5DA271',
    'not_significant': '#A0A0A0',
    'baseline': '#E07B39',
}
BACKEND_COLORS = ['#4A7BA7', '#5DA271', '#B55D8C', '#D9A441']

PROJECT_ROOT = Path(__file__).parent.parent
RESULTS_DIR = PROJECT_ROOT / "results"


def _save(fig: plt.Figure, output_path: Path) -> None:
    fig.savefig(output_path.with_suffix('.pdf'))
    fig.savefig(output_path.with_suffix('.png'))
    print(f"  Saved: {output_path.with_suffix('.png')}")
    plt.close(fig)


def plot_significance(significance: pd.DataFrame, output_path: Path) -> None:
    """Horizontal bars of -log10(p) per attribute; the alpha threshold is dashed."""
    df = significance.sort_values("p_value", ascending=False)
    # p-values can underflow to 0
    score = -np.log10(df["p_value"].clip(lower=1e-300))
    colors = [
        COLORS['significant'] if rejects else COLORS['not_significant']
        for rejects in df["rejects_null"]
    ]

    fig, ax = plt.subplots(figsize=(7, 0.4 * len(df) + 1.5))
    ax.barh(df["numeric_attr"], score, color=colors, edgecolor='black', linewidth=0.5)
    ax.axvline(-np.log10(df["alpha"].iloc[0]), color='gray', linestyle='--', linewidth=0.8)
    ax.set_xlabel(r'$-\log_{10}$ p-value (Kruskal-Wallis)')
    ax.set_title(f"Group differences by {df['categorical_attr'].iloc[0]}", fontweight='bold')
    plt.tight_layout()
    _save(fig, output_path)


def plot_accuracy(report: pd.DataFrame, output_path: Path) -> None:
    """Grouped bars of held-out accuracy per candidate, one bar per backend."""
    ok = report[report["error"].isna()]
    table = ok.pivot(index="candidate", columns="backend", values="accuracy")
    table = table.loc[table.max(axis=1).sort_values(ascending=False).index]
    baseline = ok.groupby("candidate")["majority_baseline"].first().reindex(table.index)

    x = np.arange(len(table))
    width = 0.8 / max(len(table.columns), 1)
    fig, ax = plt.subplots(figsize=(max(6, 0.9 * len(table) + 2), 5))
    for i, backend in enumerate(table.columns):
        ax.bar(x + (i - (len(table.columns) - 1) / 2) * width, table[backend], width,
               label=backend, color=BACKEND_COLORS[i % len(BACKEND_COLORS)],
               edgecolor='black', linewidth=0.5)
    ax.scatter(x, baseline, marker='_', s=400, color=COLORS['baseline'],
               label='Majority baseline', zorder=3)

    ax.set_ylabel('Held-out accuracy')
    ax.set_xlabel('Feature set')
    ax.set_title('Model comparison', fontweight='bold')
    ax.set_xticks(x)
    ax.set_xticklabels(table.index, rotation=30, ha='right')
    ax.set_ylim(0, 1.05)
    ax.legend(loc='upper right')
    plt.tight_layout()
    _save(fig, output_path)


def plot_confusion(report: pd.DataFrame, confusion: pd.DataFrame, output_path: Path) -> None:
    """Heatmap of the confusion matrix of the top-ranked successful unit."""
    ok = report[report["error"].isna()]
    if ok.empty:
        print("  Skipped confusion matrix: no successful evaluation unit")
        return
    best = ok.iloc[0]
    unit = confusion[(confusion["candidate"] == best["candidate"]) & (confusion["backend"] == best["backend"])]
    matrix = unit.pivot(index="actual", columns="predicted", values="count").fillna(0)

    fig, ax = plt.subplots(figsize=(0.5 * len(matrix) + 3, 0.5 * len(matrix) + 2.5))
    im = ax.imshow(matrix.to_numpy(), cmap='Blues')
    ax.set_xticks(np.arange(len(matrix.columns)))
    ax.set_xticklabels(matrix.columns, rotation=45, ha='right')
    ax.set_yticks(np.arange(len(matrix.index)))
    ax.set_yticklabels(matrix.index)
    ax.set_xlabel('Predicted')
    ax.set_ylabel('Actual')
    ax.set_title(f"{best['candidate']} / {best['backend']} (acc={best['accuracy']:.2f})", fontweight='bold')
    ax.grid(False)
    fig.colorbar(im, ax=ax, fraction=0.046)
    plt.tight_layout()
    _save(fig, output_path)


def write_summary_table(report: pd.DataFrame, output_path: Path) -> None:
    """Plain-text ranking of every evaluation unit."""
    lines = [
        f"{'Candidate':<30} {'Backend':<15} {'Accuracy':>9} {'Train':>7} {'Baseline':>9} {'Macro F1':>9}",
        "-" * 84,
    ]
    for _, r in report.iterrows():
        if pd.isna(r["accuracy"]):
            lines.append(f"{r['candidate']:<30} {r['backend']:<15} FAILED: {r['error']}")
            continue
        lines.append(
            f"{r['candidate']:<30} {r['backend']:<15} {r['accuracy']:>9.3f} {r['train_accuracy']:>7.3f} "
            f"{r['majority_baseline']:>9.3f} {r['macro_f1']:>9.3f}"
        )
    text = "\n".join(lines)
    output_path.with_suffix('.txt').write_text(text, encoding='utf-8')
    print(f"  Saved: {output_path.with_suffix('.txt')}")
    print("\n" + text)


def main():
    parser = argparse.ArgumentParser(description="Figures for one analysis run")
    parser.add_argument("--results", type=Path, default=RESULTS_DIR, help="Output directory of scripts/run.py")
    args = parser.parse_args()

    report_path = args.results / "report.csv"
    if not report_path.exists():
        raise FileNotFoundError(
            f"Report not found at {report_path}. Run 'python scripts/run.py' first."
        )
    significance = pd.read_csv(args.results / "significance.csv")
    report = pd.read_csv(report_path)
    confusion = pd.read_csv(args.results / "confusion.csv")

    figures_dir = args.results / "figures"
    figures_dir.mkdir(parents=True, exist_ok=True)

    if not significance.empty:
        print("\n[Significance]")
        plot_significance(significance, figures_dir / "significance")
    if not report.empty:
        print("\n[Accuracy]")
        plot_accuracy(report, figures_dir / "accuracy")
        print("\n[Confusion]")
        plot_confusion(report, confusion, figures_dir / "confusion")
    print("\n[Summary]")
    write_summary_table(report, figures_dir / "summary_table")


if __name__ == "__main__":
    main()
