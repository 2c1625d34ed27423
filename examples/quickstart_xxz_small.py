from __future__ import annotations

from srnqs.config.presets import xxz_small_config
from srnqs.vmc.training import reference_energy, train_sampled

if __name__ == "__main__":
    config = xxz_small_config(seed=0)
    result = train_sampled(config=config)

    print("XXZ small run complete")
    print(f"Iterations: {len(result.history)}")
    print(f"Final energy: {result.final_eval.mean:.6f} ± {result.final_eval.stderr:.6f}")
    print(f"Exact energy: {reference_energy(config):.6f}")
