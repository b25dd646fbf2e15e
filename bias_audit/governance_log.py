import json
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from config import GOVERNANCE_LOG_FILE


@dataclass
class GovernanceEvent:
    timestamp: str
    event_type: str  # e.g. "GROUND_TRUTH_RECORDED", "FAIRNESS_AUDIT_RUN", "FAIRNESS_ALERT_RAISED"
    details: Dict[str, Any]


def _append_jsonl(path, obj: Dict[str, Any]) -> None:
    with open(path, "a") as f:
        f.write(json.dumps(obj) + "\n")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def log_governance_event(event_type: str, details: Optional[Dict[str, Any]] = None) -> None:
    event = GovernanceEvent(
        timestamp=utc_now().isoformat(),
        event_type=event_type,
        details=details or {},
    )
    _append_jsonl(GOVERNANCE_LOG_FILE, asdict(event))


def load_governance_events(event_type: Optional[str] = None) -> List[Dict[str, Any]]:
    path = GOVERNANCE_LOG_FILE
    if not path.exists():
        return []
    lines = path.read_text().strip().splitlines()
    events = [json.loads(l) for l in lines if l.strip()]
    if event_type is None:
        return events
    return [e for e in events if e.get("event_type") == event_type]
