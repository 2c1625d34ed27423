from __future__ import annotations


def geometric_decay(step: int, initial_value: float, factor: float) -> float:
    """Geometric decay schedule for SR diagonal shift."""

    if step < 0:
        raise ValueError("step must be non-negative")
    if factor <= 0.0:
        raise ValueError("factor must be > 0")
    return initial_value * (factor ** step)


def lambda_schedule(step: int, lambda_ini: float, lambda_decay: float, lambda_min: float) -> float:
    """``max(lambda_min, lambda_ini * lambda_decay**step)``."""

    return max(lambda_min, geometric_decay(step, lambda_ini, lambda_decay))
