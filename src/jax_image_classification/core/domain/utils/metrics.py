from __future__ import annotations

from dataclasses import dataclass

import numpy as np

_LOG_LOSS_EPSILON = 1e-15


@dataclass(frozen=True)
class MulticlassMetrics:
    micro_accuracy: float
    macro_accuracy: float
    log_loss: float
    log_loss_reduction: float
    per_class_log_loss: tuple[float, ...]
    top_k: int
    top_k_accuracy: float
    confusion_matrix: np.ndarray  # rows: true key, cols: predicted key


def evaluate_multiclass(
    y_true: np.ndarray,
    scores: np.ndarray,
    *,
    num_classes: int,
    top_k: int = 3,
) -> MulticlassMetrics:
    """Compute multiclass classification quality without sklearn.

    Args:
        y_true: shape (n,), integer keys in [0, num_classes)
        scores: shape (n, num_classes), per-class probabilities
        num_classes: number of classes the model knows about
        top_k: k for top-k accuracy (clamped to num_classes)

    Returns:
        Metrics. Scalars are NaN when there are no rows. Per-class log-loss is
        NaN for classes absent from `y_true`.
    """

    y_true = np.asarray(y_true).astype(np.int64).reshape(-1)
    scores = np.asarray(scores, dtype=np.float64).reshape(len(y_true), num_classes)
    n = len(y_true)
    top_k = max(1, min(int(top_k), num_classes))

    confusion = np.zeros((num_classes, num_classes), dtype=np.int64)
    if n == 0:
        nan = float("nan")
        return MulticlassMetrics(
            micro_accuracy=nan,
            macro_accuracy=nan,
            log_loss=nan,
            log_loss_reduction=nan,
            per_class_log_loss=tuple(nan for _ in range(num_classes)),
            top_k=top_k,
            top_k_accuracy=nan,
            confusion_matrix=confusion,
        )

    y_pred = np.argmax(scores, axis=-1)
    np.add.at(confusion, (y_true, y_pred), 1)

    correct = y_pred == y_true
    micro = float(correct.mean())

    support = confusion.sum(axis=1)
    present = support > 0
    recalls = np.diag(confusion)[present] / support[present]
    macro = float(recalls.mean())

    p_true = np.clip(scores[np.arange(n), y_true], _LOG_LOSS_EPSILON, 1.0)
    row_loss = -np.log(p_true)
    log_loss = float(row_loss.mean())

    per_class = []
    for c in range(num_classes):
        mask = y_true == c
        per_class.append(float(row_loss[mask].mean()) if mask.any() else float("nan"))

    # Log-loss of a model that always predicts the class priors of `y_true`.
    prior = support / float(n)
    prior_loss = float(-(prior[present] * np.log(prior[present])).sum())
    if prior_loss > 0.0:
        reduction = (prior_loss - log_loss) / prior_loss
    else:
        reduction = 0.0 if log_loss == 0.0 else float("-inf")

    # Rank of the true class: count of classes scored strictly higher.
    higher = (scores > scores[np.arange(n), y_true][:, None]).sum(axis=-1)
    top_k_acc = float((higher < top_k).mean())

    return MulticlassMetrics(
        micro_accuracy=micro,
        macro_accuracy=macro,
        log_loss=log_loss,
        log_loss_reduction=float(reduction),
        per_class_log_loss=tuple(per_class),
        top_k=top_k,
        top_k_accuracy=top_k_acc,
        confusion_matrix=confusion,
    )


def softmax(logits: np.ndarray) -> np.ndarray:
    z = np.asarray(logits, dtype=np.float64)
    z = z - z.max(axis=-1, keepdims=True)
    e = np.exp(z)
    return e / e.sum(axis=-1, keepdims=True)
