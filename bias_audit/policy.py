from dataclasses import dataclass
from typing import FrozenSet

from config import (
    CLASSIFICATION_LABELS,
    POSITIVE_CLASSIFICATIONS,
    UNKNOWN_GROUP,
    PARITY_THRESHOLD,
    OPPORTUNITY_THRESHOLD,
    CALIBRATION_THRESHOLD,
)


@dataclass(frozen=True)
class LabelTaxonomy:
    """
    Classification vocabulary plus the subset counted as "positive"
    for fairness purposes.

    Labels outside the vocabulary are never rejected here: they are simply
    not positive.
    """

    labels: FrozenSet[str]
    positive_labels: FrozenSet[str]
    unknown_group: str = UNKNOWN_GROUP

    def __post_init__(self):
        object.__setattr__(self, "labels", frozenset(self.labels))
        object.__setattr__(self, "positive_labels", frozenset(self.positive_labels))
        if not self.positive_labels:
            raise ValueError("At least one positive label is required")
        extra = self.positive_labels - self.labels
        if extra:
            raise ValueError(
                f"Positive labels not in vocabulary: {', '.join(sorted(extra))}"
            )

    @classmethod
    def default(cls) -> "LabelTaxonomy":
        return cls(
            labels=frozenset(CLASSIFICATION_LABELS),
            positive_labels=frozenset(POSITIVE_CLASSIFICATIONS),
        )

    def is_positive(self, label) -> bool:
        return label in self.positive_labels

    def is_known(self, label) -> bool:
        return label in self.labels


@dataclass(frozen=True)
class AlertThresholds:
    parity: float = PARITY_THRESHOLD
    opportunity: float = OPPORTUNITY_THRESHOLD
    calibration: float = CALIBRATION_THRESHOLD

    def __post_init__(self):
        for name in ("parity", "opportunity", "calibration"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} threshold must lie in [0, 1], got {value}")

    @classmethod
    def default(cls) -> "AlertThresholds":
        return cls()
