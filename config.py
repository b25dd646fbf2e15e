from pathlib import Path

# ==================== System Metadata ====================
SYSTEM_NAME = "DermTrack Fairness Governor"
SYSTEM_VERSION = "1.0.0"
PROVIDER = "DermTrack Clinical Informatics"

# Protected attribute for fairness diagnostics
PROTECTED_ATTRIBUTE = "fitzpatrick_type"
FITZPATRICK_TYPES = ["I", "II", "III", "IV", "V", "VI"]
UNKNOWN_GROUP = "Unknown"

# ==================== Paths ====================
BASE_DIR = Path(__file__).resolve().parent
DATA_DIR = BASE_DIR / "data"
LOG_DIR = BASE_DIR / "logs"

DATA_DIR.mkdir(exist_ok=True)
LOG_DIR.mkdir(exist_ok=True)

CLINICAL_RECORDS_FILE = DATA_DIR / "clinical_records.json"
AUDIT_RUNS_FILE = DATA_DIR / "fairness_audit_runs.json"
GOVERNANCE_LOG_FILE = LOG_DIR / "governance_events.jsonl"

# ==================== Classification Vocabulary ====================
CLASSIFICATION_LABELS = ["Benign", "Malignant", "Rash", "Infection"]
# Clinically urgent categories, where a missed call does the most harm
POSITIVE_CLASSIFICATIONS = ["Malignant", "Infection"]

DEFAULT_GROUND_TRUTH_SOURCE = "clinician_review"

# ==================== Fairness Alert Thresholds ====================
PARITY_THRESHOLD = 0.15
OPPORTUNITY_THRESHOLD = 0.15
CALIBRATION_THRESHOLD = 0.10

# ==================== Audit Defaults ====================
DEFAULT_AUDIT_DAYS_BACK = 30
AUDIT_WINDOW_OPTIONS = [7, 30, 90, 365]
DEFAULT_AUDIT_RUN_LIMIT = 10
# Groups smaller than this are flagged in reports as statistically thin
MIN_GROUP_SAMPLES = 5
