from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Prediction:
    image_file_name: str
    predicted_label: str
    scores: tuple[float, ...]
    class_labels: tuple[str, ...]

    @property
    def probability(self) -> float:
        return max(self.scores) if self.scores else float("nan")
