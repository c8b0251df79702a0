from __future__ import annotations

import multiprocessing as mp

from garchnts import (
    ContractTerms,
    GarchNTSPricer,
    ModelParameters,
    StudyConfig,
    load_results,
    run_study,
)


def progress(completed: int, total: int):
    step = max(1, total // 10)
    if completed % step == 0 or completed == total:
        print(f"Progress: {completed}/{total} ({100 * completed / total:.0f}%)")


def direct_pricing():
    """Price one contract at several strikes and print the summary."""
    cfg = StudyConfig(n_paths=20_000, seed=42)
    pricer = GarchNTSPricer(cfg)
    params = ModelParameters.from_skew(
        alpha=1.3,
        theta=1.2,
        B=-0.3,
        kappa=2e-6,
        xi=0.08,
        lambda_=0.2,
        zeta=0.85,
        sigma0=0.012,
    )
    contract = ContractTerms(moneyness=1.0, maturity=60 / 250)
    result = pricer.price(
        params,
        contract,
        extra_moneyness=[0.9, 0.95, 1.05, 1.1],
        progress_callback=progress,
    )
    print(result.result_to_string())


def small_study():
    """Run a short batch study and read the chunks back."""
    cfg = StudyConfig(
        n_sim=12,
        n_paths=2_000,
        chunk_size=5,
        output_dir="results/demo",
        include_skew=True,
        seed=7,
    )
    report = run_study(cfg)
    print(f"Priced {report.n_priced} rows, {len(report.failures)} skipped, "
          f"{len(report.chunk_paths)} chunks in {report.execution_time:.2f}s")
    for f in report.failures:
        print(f"  row {f.row_id}: {f.error_type}: {f.message}")
    df = load_results(cfg.output_dir)
    if not df.empty:
        print(df[["row_id", "moneyness", "tao", "call_price", "put_price"]].to_string(index=False))


if __name__ == "__main__":
    mp.set_start_method("spawn", force=True)
    direct_pricing()
    small_study()
