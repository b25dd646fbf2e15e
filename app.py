import json

import matplotlib.pyplot as plt
import pandas as pd
import streamlit as st

from config import (
    SYSTEM_NAME,
    SYSTEM_VERSION,
    CLASSIFICATION_LABELS,
    FITZPATRICK_TYPES,
    DEFAULT_GROUND_TRUTH_SOURCE,
    DEFAULT_AUDIT_DAYS_BACK,
    AUDIT_WINDOW_OPTIONS,
    DEFAULT_AUDIT_RUN_LIMIT,
)
from bias_audit.alerts import current_alerts
from bias_audit.audit_runs import AuditRunStore
from bias_audit.governance_log import load_governance_events
from bias_audit.labeling import record_ground_truth
from bias_audit.orchestrator import NoLabeledSamplesError, run_fairness_audit
from bias_audit.policy import AlertThresholds, LabelTaxonomy
from bias_audit.records import ClinicalRecordStore
from bias_audit.report import generate_fairness_report
from bias_audit.synthetic import seed_store


st.set_page_config(
    page_title="Fairness & Bias Calibration",
    layout="wide",
)

st.title("Fairness & Bias Calibration – Lesion Classifier")

records = ClinicalRecordStore()
audit_store = AuditRunStore()
taxonomy = LabelTaxonomy.default()

# Sidebar
st.sidebar.header("Audit Policy")

days_back = st.sidebar.selectbox(
    "Audit window (days)",
    AUDIT_WINDOW_OPTIONS,
    index=AUDIT_WINDOW_OPTIONS.index(DEFAULT_AUDIT_DAYS_BACK),
)

defaults = AlertThresholds.default()
parity_threshold = st.sidebar.slider("Demographic parity threshold", 0.0, 1.0, defaults.parity, 0.01)
opportunity_threshold = st.sidebar.slider("Equal opportunity threshold", 0.0, 1.0, defaults.opportunity, 0.01)
calibration_threshold = st.sidebar.slider("Calibration threshold", 0.0, 1.0, defaults.calibration, 0.01)
thresholds = AlertThresholds(
    parity=parity_threshold,
    opportunity=opportunity_threshold,
    calibration=calibration_threshold,
)

st.sidebar.markdown("---")
st.sidebar.write(f"**Positive (urgent) classes:** {', '.join(sorted(taxonomy.positive_labels))}")
if st.sidebar.button("Load synthetic demo data"):
    added = seed_store(records)
    st.sidebar.success(f"Added {added} synthetic analyses.")

st.sidebar.markdown("---")
st.sidebar.write(f"**System:** {SYSTEM_NAME} v{SYSTEM_VERSION}")
st.sidebar.write("Fairness statistics are point estimates – review with a clinician.")

(
    tab_audit,
    tab_labels,
    tab_history,
    tab_log,
) = st.tabs(
    [
        "⚖️ Fairness Audit",
        "🩺 Ground Truth Labelling",
        "📜 Audit History",
        "🗂️ Governance Log",
    ]
)

# Audit tab
with tab_audit:
    if st.button(f"Run fairness audit over the last {days_back} days"):
        try:
            outcome = run_fairness_audit(
                records,
                audit_store,
                days_back=days_back,
                taxonomy=taxonomy,
                thresholds=thresholds,
            )
        except NoLabeledSamplesError as exc:
            st.warning(str(exc))
        else:
            st.success(
                f"Audit {outcome.audit_run.id[:8]} complete: "
                f"{outcome.audit_run.samples_with_ground_truth} of "
                f"{outcome.audit_run.total_samples} analyses carried ground truth."
            )

    # read after any run above, so the banner reflects the newest saved run
    alerts_state = current_alerts(audit_store)
    latest = alerts_state["audit_run"]

    if latest is None:
        st.info("No fairness audit has been run yet.")
    elif alerts_state["alerts"]:
        st.error(
            "**Bias Alerts Detected**\n\n"
            + "\n".join(f"- {a.message}" for a in alerts_state["alerts"])
        )
    else:
        st.success("No significant bias detected in the latest audit.")

    if latest is not None:
        col1, col2, col3, col4 = st.columns(4)
        col1.metric("Overall disparity", f"{latest.overall_disparity_score * 100:.1f}%")
        col2.metric(
            "Demographic parity gap",
            f"{latest.demographic_parity_gap * 100:.1f}%",
            "Alert" if latest.parity_alert else "Normal",
            delta_color="inverse" if latest.parity_alert else "off",
        )
        col3.metric(
            "Equal opportunity gap",
            f"{latest.equal_opportunity_gap * 100:.1f}%",
            "Alert" if latest.opportunity_alert else "Normal",
            delta_color="inverse" if latest.opportunity_alert else "off",
        )
        col4.metric(
            "Calibration gap",
            f"{latest.calibration_gap * 100:.1f}%",
            "Alert" if latest.calibration_alert else "Normal",
            delta_color="inverse" if latest.calibration_alert else "off",
        )

        metrics = audit_store.metrics_for_run(latest.id)
        df_metrics = pd.DataFrame([m.to_dict() for m in metrics]).set_index("group").sort_index()

        st.markdown("#### Metrics by Fitzpatrick skin type")
        st.dataframe(df_metrics, use_container_width=True)

        metrics_to_show = [
            c for c in df_metrics.columns
            if c in ["positive_rate", "true_positive_rate", "false_positive_rate",
                     "precision", "f1_score", "brier_score", "accuracy_at_confidence"]
        ]
        if metrics_to_show:
            fig, ax = plt.subplots()
            im = ax.imshow(df_metrics[metrics_to_show].values, aspect="auto", vmin=0, vmax=1)
            ax.set_xticks(range(len(metrics_to_show)))
            ax.set_xticklabels(metrics_to_show, rotation=45, ha="right")
            ax.set_yticks(range(len(df_metrics.index)))
            ax.set_yticklabels(df_metrics.index)
            ax.set_title("Fairness heatmap by Fitzpatrick type")
            plt.colorbar(im, ax=ax)
            st.pyplot(fig)

        st.markdown("#### Download audit report")
        st.download_button(
            label="Download fairness report JSON",
            data=json.dumps(generate_fairness_report(audit_store, latest.id), indent=2),
            file_name=f"fairness_report_{latest.id[:8]}.json",
            mime="application/json",
        )

# Ground truth tab
with tab_labels:
    st.subheader("Clinician-verified ground truth")

    with st.expander("Register patient / record analysis"):
        code = st.text_input("Patient code")
        name = st.text_input("Patient name")
        fitz = st.selectbox("Fitzpatrick type", ["(not recorded)"] + FITZPATRICK_TYPES)
        if st.button("Register patient"):
            try:
                records.register_patient(code, name, None if fitz == "(not recorded)" else fitz)
                st.success(f"Registered {code}.")
            except ValueError as exc:
                st.error(str(exc))

        patients = {f"{p.patient_code} – {p.name}": p.id for p in records.list_patients()}
        if patients:
            chosen = st.selectbox("Patient", list(patients))
            classification = st.selectbox("Classifier output", CLASSIFICATION_LABELS)
            confidence = st.slider("Classifier confidence (%)", 0, 100, 75)
            if st.button("Record analysis"):
                records.record_analysis(patients[chosen], classification, confidence)
                st.success("Analysis recorded.")

    pending = [a for a in records.list_analyses() if not a.ground_truth_label]
    st.markdown(f"#### Awaiting verification ({len(pending)})")
    if not pending:
        st.info("All analyses have ground truth.")
    for analysis in pending[:25]:
        col1, col2, col3 = st.columns([3, 2, 1])
        col1.write(
            f"`{analysis.id[:8]}` – **{analysis.classification}** "
            f"({analysis.confidence:.0f}%) on {analysis.analyzed_at[:10]}"
        )
        label = col2.selectbox(
            "Ground truth", CLASSIFICATION_LABELS, key=f"gt_{analysis.id}", label_visibility="collapsed"
        )
        if col3.button("Verify", key=f"verify_{analysis.id}"):
            try:
                record_ground_truth(records, analysis.id, label, DEFAULT_GROUND_TRUTH_SOURCE, taxonomy)
                st.success(f"Ground truth {label} recorded.")
            except (ValueError, KeyError) as exc:
                st.error(str(exc))

# History tab
with tab_history:
    st.subheader("Recent audit runs")

    runs = audit_store.list_runs(limit=DEFAULT_AUDIT_RUN_LIMIT)
    if runs:
        df_runs = pd.DataFrame([vars(r) for r in runs])
        st.dataframe(df_runs, use_container_width=True)

        selected = st.selectbox("Inspect audit run", [r.id for r in runs])
        st.json(generate_fairness_report(audit_store, selected))
    else:
        st.info("No audit runs recorded yet.")

# Governance log tab
with tab_log:
    st.subheader("Governance Events (labelling, audits, alerts)")

    events = load_governance_events()[-100:]
    if events:
        st.dataframe(pd.json_normalize(events), use_container_width=True, height=420)
    else:
        st.info("No governance events logged yet.")
