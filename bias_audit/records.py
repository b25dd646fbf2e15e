import json
import os
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from filelock import FileLock

from config import CLINICAL_RECORDS_FILE, FITZPATRICK_TYPES
from .fairness import PredictionRecord
from .governance_log import utc_now


@dataclass
class PatientRecord:
    id: str
    patient_code: str
    name: str
    fitzpatrick_type: Optional[str]
    created_at: str


@dataclass
class AnalysisRecord:
    id: str
    patient_id: str
    classification: str
    confidence: float
    analyzed_at: str
    ground_truth_label: Optional[str] = None
    ground_truth_source: Optional[str] = None
    ground_truth_recorded_at: Optional[str] = None


def write_json_atomic(path: Path, obj: Dict[str, Any]) -> None:
    path.parent.mkdir(exist_ok=True, parents=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with open(tmp_path, "w") as f:
        json.dump(obj, f, indent=2)
    os.replace(tmp_path, path)


def read_json(path: Path, empty: Dict[str, Any]) -> Dict[str, Any]:
    if path.exists():
        with open(path, "r") as f:
            return json.load(f)
    return {key: list(value) for key, value in empty.items()}


@contextmanager
def locked_document(path: Path, empty: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    """Fresh copy of the document under a file lock, written back if the block completes."""
    path.parent.mkdir(exist_ok=True, parents=True)
    with FileLock(str(path) + ".lock"):
        data = read_json(path, empty)
        yield data
        write_json_atomic(path, data)


def _as_utc(dt: datetime) -> datetime:
    # naive timestamps are taken to be UTC
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _in_window(timestamp: str, start: datetime, end: datetime) -> bool:
    return _as_utc(start) <= _as_utc(datetime.fromisoformat(timestamp)) <= _as_utc(end)


EMPTY_RECORDS = {"patients": [], "analyses": []}


def new_patient(
    patient_code: str,
    name: str,
    fitzpatrick_type: Optional[str] = None,
) -> PatientRecord:
    if fitzpatrick_type is not None and fitzpatrick_type not in FITZPATRICK_TYPES:
        raise ValueError(
            f"Invalid Fitzpatrick type {fitzpatrick_type!r}. "
            f"Must be one of: {', '.join(FITZPATRICK_TYPES)}"
        )
    return PatientRecord(
        id=uuid.uuid4().hex,
        patient_code=patient_code,
        name=name,
        fitzpatrick_type=fitzpatrick_type,
        created_at=utc_now().isoformat(),
    )


def new_analysis(
    patient_id: str,
    classification: str,
    confidence: float,
    analyzed_at: Optional[datetime] = None,
    ground_truth_label: Optional[str] = None,
    ground_truth_source: Optional[str] = None,
) -> AnalysisRecord:
    if not 0 <= confidence <= 100:
        raise ValueError(f"Confidence must lie in [0, 100], got {confidence}")
    return AnalysisRecord(
        id=uuid.uuid4().hex,
        patient_id=patient_id,
        classification=classification,
        confidence=float(confidence),
        analyzed_at=_as_utc(analyzed_at or utc_now()).isoformat(),
        ground_truth_label=ground_truth_label,
        ground_truth_source=ground_truth_source,
        ground_truth_recorded_at=utc_now().isoformat() if ground_truth_label else None,
    )


class ClinicalRecordStore:
    """
    Patients and classifier analyses, kept in a single JSON document.

    Reads use the copy loaded at construction (refreshed after each write);
    every write re-reads the file under a lock and merges into it.
    """

    def __init__(self, path: Path = CLINICAL_RECORDS_FILE):
        self.path = Path(path)
        self._records = read_json(self.path, EMPTY_RECORDS)

    def reload(self) -> None:
        self._records = read_json(self.path, EMPTY_RECORDS)

    def add_records(
        self,
        patients: Sequence[PatientRecord] = (),
        analyses: Sequence[AnalysisRecord] = (),
    ) -> Tuple[List[PatientRecord], List[AnalysisRecord]]:
        """Insert patients and analyses in one locked write."""
        with locked_document(self.path, EMPTY_RECORDS) as data:
            codes = {p["patient_code"] for p in data["patients"]}
            for patient in patients:
                if patient.patient_code in codes:
                    raise ValueError(f"Patient code {patient.patient_code!r} already registered")
                codes.add(patient.patient_code)

            patient_ids = {p["id"] for p in data["patients"]} | {p.id for p in patients}
            for analysis in analyses:
                if analysis.patient_id not in patient_ids:
                    raise KeyError(f"Patient not found: {analysis.patient_id}")

            data["patients"].extend(asdict(p) for p in patients)
            data["analyses"].extend(asdict(a) for a in analyses)
        self._records = data
        return list(patients), list(analyses)

    # Patients

    def register_patient(
        self,
        patient_code: str,
        name: str,
        fitzpatrick_type: Optional[str] = None,
    ) -> PatientRecord:
        patient = new_patient(patient_code, name, fitzpatrick_type)
        self.add_records(patients=[patient])
        return patient

    def get_patient(self, patient_id: str) -> PatientRecord:
        for p in self._records["patients"]:
            if p["id"] == patient_id:
                return PatientRecord(**p)
        raise KeyError(f"Patient not found: {patient_id}")

    def list_patients(self) -> List[PatientRecord]:
        return [PatientRecord(**p) for p in self._records["patients"]]

    # Analyses

    def record_analysis(
        self,
        patient_id: str,
        classification: str,
        confidence: float,
        analyzed_at: Optional[datetime] = None,
    ) -> AnalysisRecord:
        analysis = new_analysis(patient_id, classification, confidence, analyzed_at)
        self.add_records(analyses=[analysis])
        return analysis

    def get_analysis(self, analysis_id: str) -> AnalysisRecord:
        for a in self._records["analyses"]:
            if a["id"] == analysis_id:
                return AnalysisRecord(**a)
        raise KeyError(f"Analysis not found: {analysis_id}")

    def list_analyses(self) -> List[AnalysisRecord]:
        return [AnalysisRecord(**a) for a in self._records["analyses"]]

    def set_ground_truth(self, analysis_id: str, label: str, source: str) -> AnalysisRecord:
        with locked_document(self.path, EMPTY_RECORDS) as data:
            for a in data["analyses"]:
                if a["id"] == analysis_id:
                    a["ground_truth_label"] = label
                    a["ground_truth_source"] = source
                    a["ground_truth_recorded_at"] = utc_now().isoformat()
                    updated = AnalysisRecord(**a)
                    break
            else:
                raise KeyError(f"Analysis not found: {analysis_id}")
        self._records = data
        return updated

    # Audit inputs

    def count_analyses(self, start: datetime, end: datetime) -> int:
        return sum(
            1 for a in self._records["analyses"] if _in_window(a["analyzed_at"], start, end)
        )

    def labeled_predictions(self, start: datetime, end: datetime) -> List[PredictionRecord]:
        """Analyses in the window that carry ground truth, tagged with the patient's skin type."""
        skin_types = {p["id"]: p["fitzpatrick_type"] for p in self._records["patients"]}
        records = []
        for a in self._records["analyses"]:
            if not a.get("ground_truth_label"):
                continue
            if not _in_window(a["analyzed_at"], start, end):
                continue
            if a["patient_id"] not in skin_types:
                raise KeyError(f"Patient not found for analysis {a['id']}")
            records.append(
                PredictionRecord(
                    classification=a["classification"],
                    ground_truth=a["ground_truth_label"],
                    confidence=a["confidence"],
                    group=skin_types[a["patient_id"]],
                )
            )
        return records
