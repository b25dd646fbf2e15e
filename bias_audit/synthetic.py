from datetime import datetime, timedelta
from typing import Dict, Optional

import numpy as np
import pandas as pd

from config import CLASSIFICATION_LABELS, FITZPATRICK_TYPES, POSITIVE_CLASSIFICATIONS
from .governance_log import utc_now
from .records import ClinicalRecordStore, new_analysis, new_patient

# Chance that an urgent lesion is called "Benign", per skin type
DEFAULT_MISS_RATES = {"I": 0.05, "II": 0.05, "III": 0.08, "IV": 0.15, "V": 0.25, "VI": 0.30}


def generate_synthetic_analyses(
    n: int = 200,
    seed: int = 42,
    miss_rates: Optional[Dict[str, float]] = None,
    label_fraction: float = 0.8,
    unknown_type_fraction: float = 0.05,
    max_days_ago: int = 60,
) -> pd.DataFrame:
    """
    Simulated classifier output with a built-in skin-type bias, for demos:
    urgent lesions on darker skin are missed more often.
    """
    miss_rates = miss_rates or DEFAULT_MISS_RATES
    rng = np.random.default_rng(seed)

    df = pd.DataFrame({
        "fitzpatrick_type": rng.choice(FITZPATRICK_TYPES, n),
        "ground_truth": rng.choice(CLASSIFICATION_LABELS, n, p=[0.45, 0.2, 0.2, 0.15]),
        "days_ago": rng.integers(0, max_days_ago, n),
    })

    correct = rng.uniform(0, 1, n) < 0.85
    wrong_label = rng.choice(CLASSIFICATION_LABELS, n)
    classification = np.where(correct, df["ground_truth"], wrong_label)

    urgent = df["ground_truth"].isin(POSITIVE_CLASSIFICATIONS).to_numpy()
    miss_p = df["fitzpatrick_type"].map(miss_rates).fillna(0.0).to_numpy()
    missed = urgent & (rng.uniform(0, 1, n) < miss_p)
    classification = np.where(missed, "Benign", classification)
    df["classification"] = classification

    hit = df["classification"] == df["ground_truth"]
    confidence = np.where(hit, rng.normal(82, 8, n), rng.normal(70, 12, n))
    df["confidence"] = np.clip(np.round(confidence), 0, 100).astype(int)

    df.loc[rng.uniform(0, 1, n) >= label_fraction, "ground_truth"] = None
    df.loc[rng.uniform(0, 1, n) < unknown_type_fraction, "fitzpatrick_type"] = None
    return df


def seed_store(
    store: ClinicalRecordStore,
    n: int = 200,
    seed: int = 42,
    now: Optional[datetime] = None,
) -> int:
    """Load synthetic patients and analyses into a record store. Returns rows added."""
    now = now or utc_now()
    df = generate_synthetic_analyses(n=n, seed=seed)
    offset = len(store.list_patients())

    patients, analyses = [], []
    for i, row in enumerate(df.itertuples(index=False)):
        patient = new_patient(
            patient_code=f"SYN-{seed}-{offset + i:05d}",
            name=f"Synthetic patient {offset + i}",
            fitzpatrick_type=row.fitzpatrick_type if pd.notna(row.fitzpatrick_type) else None,
        )
        labelled = pd.notna(row.ground_truth)
        analyses.append(
            new_analysis(
                patient.id,
                classification=str(row.classification),
                confidence=int(row.confidence),
                analyzed_at=now - timedelta(days=int(row.days_ago)),
                ground_truth_label=str(row.ground_truth) if labelled else None,
                ground_truth_source="synthetic" if labelled else None,
            )
        )
        patients.append(patient)

    store.add_records(patients=patients, analyses=analyses)
    print(f"[Synthetic] Seeded {len(df)} analyses into {store.path}")
    return len(df)
