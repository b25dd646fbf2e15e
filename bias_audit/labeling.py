from typing import Optional

from .governance_log import log_governance_event
from .policy import LabelTaxonomy
from .records import AnalysisRecord, ClinicalRecordStore


def record_ground_truth(
    store: ClinicalRecordStore,
    analysis_id: str,
    label: str,
    source: str,
    taxonomy: Optional[LabelTaxonomy] = None,
) -> AnalysisRecord:
    """
    Attach a clinician-verified label to an analysis.

    Raises:
        ValueError: a field is missing or the label is outside the vocabulary
        KeyError: the analysis does not exist
    """
    taxonomy = taxonomy or LabelTaxonomy.default()

    if not analysis_id or not label or not source:
        raise ValueError("Analysis ID, ground truth label, and source are required")

    if not taxonomy.is_known(label):
        raise ValueError(
            "Invalid ground truth label. Must be one of: "
            + ", ".join(sorted(taxonomy.labels))
        )

    analysis = store.get_analysis(analysis_id)
    updated = store.set_ground_truth(analysis_id, label, source)

    log_governance_event(
        "GROUND_TRUTH_RECORDED",
        {
            "analysis_id": analysis_id,
            "label": label,
            "source": source,
            "previous_label": analysis.ground_truth_label,
            "matches_classification": updated.classification == label,
        },
    )
    return updated
