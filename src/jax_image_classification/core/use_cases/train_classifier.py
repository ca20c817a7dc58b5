from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import jax
import jax.numpy as jnp
import optax

from jax_image_classification.core.domain.commands.train import TrainCommand
from jax_image_classification.core.domain.entities.base import Batch, StepMetrics
from jax_image_classification.core.domain.entities.model import ClassifierFns, MlpClassifierFns, Params
from jax_image_classification.core.domain.errors.training import TrainingError
from jax_image_classification.core.ports.dataset_provider import DatasetProviderPort
from jax_image_classification.core.ports.metrics_sink import MetricsSinkPort

LOG_SOURCE = "ImageClassificationTrainer"


@dataclass(frozen=True)
class TrainResult:
    params: Params
    history: list[dict[str, Any]]
    best_epoch: int | None = None


class TrainClassifierUseCase:
    """Fit a softmax head on pre-computed features with AdamW.

    Validation accuracy drives early stopping and the choice of the returned
    params (best epoch wins).
    """

    def __init__(
        self,
        *,
        dataset_provider: DatasetProviderPort,
        metrics_sink: MetricsSinkPort | None = None,
        model_fns: ClassifierFns | None = None,
    ) -> None:
        self._dataset = dataset_provider
        self._metrics = metrics_sink
        self._model = model_fns or MlpClassifierFns()

    def _log(self, step: int, metrics: dict[str, Any]) -> None:
        if self._metrics:
            self._metrics.log(step=step, metrics={"source": LOG_SOURCE, **metrics})

    def run(self, command: TrainCommand) -> TrainResult:
        info = self._dataset.info
        if info.num_classes <= 1:
            raise TrainingError(f"num_classes must be >= 2, got {info.num_classes}")
        if len(info.input_shape) < 1:
            raise TrainingError(f"input_shape must be known, got {info.input_shape}")
        if info.train_size == 0:
            raise TrainingError("training split is empty")

        input_dim = 1
        for d in info.input_shape:
            input_dim *= d

        key = jax.random.PRNGKey(command.seed)
        params = self._model.init(key=key, input_dim=input_dim, num_classes=info.num_classes)

        optimizer = optax.adamw(
            learning_rate=command.learning_rate,
            b1=command.adamw_b1,
            b2=command.adamw_b2,
            eps=command.adamw_eps,
            eps_root=command.adamw_eps_root,
            weight_decay=command.weight_decay,
            nesterov=command.adamw_nesterov,
        )
        opt_state = optimizer.init(params)

        def _prepare_x(x: jax.Array) -> jax.Array:
            # Flatten any (B, ...) into (B, D)
            return jnp.reshape(x, (x.shape[0], -1))

        def loss_and_metrics(p: Params, batch: Batch) -> StepMetrics:
            x = _prepare_x(jnp.asarray(batch.x))
            y = jnp.asarray(batch.y).astype(jnp.int32)
            logits = self._model.apply(p, x, is_training=True)
            loss = optax.softmax_cross_entropy_with_integer_labels(logits, y).mean()
            acc = jnp.mean(jnp.argmax(logits, axis=-1) == y)
            return StepMetrics(loss=float(loss), accuracy=float(acc))

        @jax.jit
        def train_step(p: Params, s: optax.OptState, x: jax.Array, y: jax.Array):
            def _loss_fn(pp: Params):
                logits = self._model.apply(pp, x, is_training=True)
                return optax.softmax_cross_entropy_with_integer_labels(logits, y).mean()

            loss, grads = jax.value_and_grad(_loss_fn)(p)
            updates, s2 = optimizer.update(grads, s, p)
            p2 = optax.apply_updates(p, updates)
            return p2, s2, loss

        @jax.jit
        def eval_step(p: Params, x: jax.Array, y: jax.Array):
            logits = self._model.apply(p, x, is_training=False)
            loss = optax.softmax_cross_entropy_with_integer_labels(logits, y).sum()
            correct = jnp.sum(jnp.argmax(logits, axis=-1) == y)
            return loss, correct

        def evaluate(p: Params, split: str) -> tuple[float | None, float | None]:
            total_loss = 0.0
            total_correct = 0
            total = 0
            for batch in self._dataset.iter_batches(
                split=split,
                batch_size=command.batch_size,
                shuffle=False,
                seed=command.seed,
            ):
                x = _prepare_x(jnp.asarray(batch.x))
                y = jnp.asarray(batch.y).astype(jnp.int32)
                l, c = eval_step(p, x, y)
                total_loss += float(l)
                total_correct += int(c)
                total += int(y.shape[0])
            if total == 0:
                return None, None
            return total_loss / total, total_correct / total

        history: list[dict[str, Any]] = []
        global_step = 0

        best_acc: float | None = None
        best_epoch: int | None = None
        best_params: Params | None = None
        epochs_since_improvement = 0

        for epoch in range(1, command.epochs + 1):
            # Train
            for batch in self._dataset.iter_batches(
                split="train",
                batch_size=command.batch_size,
                shuffle=True,
                seed=command.seed + epoch,
            ):
                x = _prepare_x(jnp.asarray(batch.x))
                y = jnp.asarray(batch.y).astype(jnp.int32)
                params, opt_state, loss = train_step(params, opt_state, x, y)
                global_step += 1

                if self._metrics and (global_step % command.log_every_steps == 0):
                    m = loss_and_metrics(params, batch)
                    self._log(global_step, {"train/loss": m.loss, "train/acc": m.accuracy})

            train_loss, train_acc = evaluate(params, "train")
            valid_loss, valid_acc = evaluate(params, "valid")

            if valid_acc is not None:
                if best_acc is None or valid_acc > (best_acc + command.early_stopping_min_delta):
                    best_acc = float(valid_acc)
                    best_epoch = int(epoch)
                    best_params = params
                    epochs_since_improvement = 0
                else:
                    epochs_since_improvement += 1

            epoch_summary = {
                "phase": "Training",
                "epoch": epoch,
                "train/loss": train_loss,
                "train/acc": train_acc,
                "valid/loss": valid_loss,
                "valid/acc": valid_acc,
                "best/acc": best_acc,
                "best/epoch": best_epoch,
                "global_step": global_step,
            }
            history.append(epoch_summary)
            self._log(global_step, epoch_summary)

            if command.early_stopping_patience and best_acc is not None:
                if epochs_since_improvement >= command.early_stopping_patience:
                    self._log(
                        global_step,
                        {
                            "event": "early_stop",
                            "epoch": epoch,
                            "best/acc": best_acc,
                            "best/epoch": best_epoch,
                            "patience": int(command.early_stopping_patience),
                        },
                    )
                    break

        # Prefer the best params by validation accuracy if available.
        final_params = best_params if best_params is not None else params
        return TrainResult(params=final_params, history=history, best_epoch=best_epoch)
