from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TrainCommand:
    """Intent to train the classification head over bottleneck features."""

    epochs: int = 200
    batch_size: int = 10
    seed: int = 1

    learning_rate: float = 0.01
    weight_decay: float = 0.0

    # Optimizer (Optax AdamW)
    # Matches optax.adamw signature defaults.
    adamw_b1: float = 0.9
    adamw_b2: float = 0.999
    adamw_eps: float = 1e-8
    adamw_eps_root: float = 0.0
    adamw_nesterov: bool = False

    # Empty means a single softmax layer over the backbone features.
    hidden_sizes: tuple[int, ...] = ()

    # Logging
    log_every_steps: int = 100

    # Early stopping on validation accuracy. Disabled when patience is 0 or
    # when no validation rows are supplied.
    early_stopping_patience: int = 20
    early_stopping_min_delta: float = 0.01
