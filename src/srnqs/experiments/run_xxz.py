from __future__ import annotations

import argparse
import logging
from dataclasses import asdict
from pathlib import Path

import matplotlib.pyplot as plt

from srnqs.config.presets import xxz_exact_config, xxz_small_config
from srnqs.utils.io import save_json
from srnqs.utils.logging import configure_logging
from srnqs.vmc.training import reference_energy, train_exact, train_sampled


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Optimize an RBM for the XXZ chain with SR")
    parser.add_argument("--mode", choices=("small", "exact"), default="small")
    parser.add_argument("--output-dir", type=Path, default=Path("results/xxz"))
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--save-every", type=int, default=0)
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    configure_logging(getattr(logging, args.log_level.upper(), logging.INFO))

    if args.mode == "small":
        config = xxz_small_config(seed=7 if args.seed is None else args.seed)
    else:
        config = xxz_exact_config(seed=11 if args.seed is None else args.seed)
    config = config.model_copy(update={"save_every": args.save_every})

    output_dir: Path = args.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    checkpoint_dir = output_dir / "checkpoints" if args.save_every > 0 else None

    if args.mode == "small":
        result = train_sampled(config=config, checkpoint_dir=checkpoint_dir)
    else:
        result = train_exact(config=config, checkpoint_dir=checkpoint_dir)
    exact = reference_energy(config)

    iterations = [m.iteration for m in result.history]
    energies = [m.energy for m in result.history]
    errors = [m.energy_stderr for m in result.history]

    fig, ax = plt.subplots(figsize=(6.0, 4.0))
    ax.errorbar(iterations, energies, yerr=errors, fmt="o-", ms=3, lw=1.0, capsize=2)
    ax.axhline(exact, color="k", ls="--", lw=1.0, label="exact")
    ax.set_xlabel("Iteration")
    ax.set_ylabel("Energy")
    ax.set_title(f"XXZ RBM convergence ({args.mode} mode)")
    ax.legend()
    ax.grid(alpha=0.3)
    fig.tight_layout()
    fig.savefig(output_dir / "xxz_convergence.png", dpi=150)
    plt.close(fig)

    payload = {
        "mode": args.mode,
        "config": config.model_dump(),
        "machine": result.machine.describe(),
        "history": [asdict(m) for m in result.history],
        "exact_energy": exact,
        "final_eval": {
            "mean": result.final_eval.mean,
            "stderr": result.final_eval.stderr,
        },
    }
    save_json(output_dir / "xxz_metrics.json", payload)


if __name__ == "__main__":
    main()
