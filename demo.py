from __future__ import annotations

import datetime as dt

import matplotlib.pyplot as plt
import numpy as np

from catrisk import BetaRisk, CatRiskFramework, EventSet

START = dt.date(2025, 1, 1)
END = dt.date(2027, 12, 31)
ATTACHMENT = 5e7


def progress(completed: int, total: int):
    step = max(1, total // 10)
    if completed % step == 0 or completed == total:
        print(f"Progress: {completed}/{total} ({100 * completed / total:.0f}%)")


def synthetic_history(seed: int = 1) -> list[tuple[dt.date, float]]:
    """Forty-five years of made-up hurricane landfalls."""
    rng = np.random.default_rng(seed)
    events = []
    for year in range(1980, 2025):
        for _ in range(rng.poisson(0.6)):
            day = dt.date(year, 6, 1) + dt.timedelta(days=int(rng.integers(0, 150)))
            events.append((day, float(rng.lognormal(16.5, 1.2))))
    return sorted(events)


def create_loss_visualizations(results: dict):
    """Aggregate-loss histograms and exceedance curves for each model."""
    fig, axes = plt.subplots(1, 2, figsize=(15, 6))
    fig.suptitle('Catastrophe Loss Simulation', fontsize=16, fontweight='bold')

    ax1, ax2 = axes
    for name, res in results.items():
        losses = res.results
        positive = losses[losses > 0]
        ax1.hist(positive, bins=50, alpha=0.5, density=True, label=f'{name} (P(loss>0) = {np.mean(losses > 0):.2f})')

        ordered = np.sort(positive)[::-1]
        exceedance = np.arange(1, ordered.size + 1) / losses.size
        ax2.loglog(ordered, exceedance, label=name)

    ax1.set_xlabel('Aggregate loss over window')
    ax1.set_ylabel('Density')
    ax1.set_title('Distribution of non-zero aggregate losses')
    ax1.legend()
    ax1.grid(True, alpha=0.3)

    ax2.axvline(ATTACHMENT, color='red', linestyle='--', label='Attachment')
    ax2.set_xlabel('Aggregate loss')
    ax2.set_ylabel('Exceedance probability')
    ax2.set_title('Exceedance probability curve')
    ax2.legend()
    ax2.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def main():
    fw = CatRiskFramework()
    fw.register_model(BetaRisk(max_loss=1e9, years=3, mean=2e7, std_dev=4e7), name="Beta Hurricane")
    fw.register_model(EventSet(synthetic_history(), "1980-01-01", "2024-12-31"), name="Historical")

    print("Running Beta-frequency model…")
    beta_res = fw.run_simulation(
        "Beta Hurricane", START, END, 50_000, seed=42,
        progress_callback=progress,
        percentiles=[90, 99],
        extra_context={"target": ATTACHMENT},
    )

    print("Replaying historical event set…")
    hist_res = fw.run_simulation(
        "Historical", START, END, 1_000,
        percentiles=[90, 99],
        extra_context={"target": ATTACHMENT},
    )

    print("\n" + "*" * 50)
    print("COMPARISON METRICS:")
    for metric in ("mean", "p99"):
        for name, value in fw.compare_results(["Beta Hurricane", "Historical"], metric=metric).items():
            print(f"  {metric} {name}: {value:,.0f}")
    print("*" * 50 + "\n")

    print(beta_res.result_to_string())
    print("\n")
    print(hist_res.result_to_string())

    print("\nGenerating visualizations...")
    fig = create_loss_visualizations({"Beta Hurricane": beta_res, "Historical": hist_res})
    plt.show()

    save_plots = input("\nSave plots to files? (y/N): ").lower().strip() == 'y'
    if save_plots:
        fig.savefig('catastrophe_losses.png', bbox_inches='tight', dpi=300)
        print("Plots saved as PNG files!")


if __name__ == "__main__":
    main()
