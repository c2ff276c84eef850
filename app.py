"""Streamlit review page: extract a job posting, correct it, save it."""
from __future__ import annotations

import sys
from pathlib import Path

import streamlit as st

ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(ROOT))

from job_extract.config import LEARNING_PATH, ensure_dirs, get_env
from job_extract.log import get_logger
from job_extract.models import ExtractedJobRecord
from job_extract.service import ExtractionService
from job_extract.tracker import STATUSES, ApplicationValidationError, get_applications, save_application

log = get_logger(__name__)

FORM_FIELDS: list[tuple[str, str]] = [
    ("company", "Company *"),
    ("position", "Position *"),
    ("salary", "Salary"),
    ("hourly_rate", "Hourly rate"),
    ("location", "Location"),
]


def _service() -> ExtractionService:
    if "service" not in st.session_state:
        ensure_dirs()
        st.session_state["service"] = ExtractionService(learning_path=LEARNING_PATH)
    return st.session_state["service"]


def _user_id() -> str:
    return get_env("TRACKER_USER_ID", "local") or "local"


def _confidence_label(confidence: float | None) -> str:
    if confidence is None:
        return "n/a"
    return f"{confidence:.0%}"


# ── Page: Extract ────────────────────────────────────────────────────────


def _show_extraction(record: ExtractedJobRecord) -> None:
    if record.error:
        st.error(record.error)
    elif record.diagnostic:
        st.warning(record.diagnostic)
        if record.missing_fields():
            st.caption("Missing: " + ", ".join(record.missing_fields()))
    else:
        st.success("Job details extracted. Review and save.")
    if record.confidence is not None:
        st.metric("Confidence", _confidence_label(record.confidence))


def _review_form(record: ExtractedJobRecord, strategy: str) -> None:
    service = _service()
    with st.form("review"):
        c1, c2 = st.columns(2)
        values: dict[str, str] = {}
        for i, (name, label) in enumerate(FORM_FIELDS):
            with (c1 if i % 2 == 0 else c2):
                values[name] = st.text_input(label, value=record.get(name) or "")
        values["job_url"] = st.text_input("Job URL", value=record.source_url)
        values["description"] = st.text_area("Description", value=record.description or "", height=150)
        values["notes"] = st.text_area("Notes", value=record.notes or "", height=100)
        status = st.selectbox("Status", STATUSES, index=0)
        save = st.form_submit_button("Save Application", type="primary", use_container_width=True)

    if not save:
        return
    try:
        row = save_application(_user_id(), values, status=status)
    except ApplicationValidationError as exc:
        for name, message in exc.errors.items():
            st.error(f"{name}: {message}")
        return
    except OSError as exc:
        log.error("Saving application for %s failed: %s", record.source_url or "manual entry", exc)
        st.error(f"Could not save the application: {exc}")
        return

    if record.source_url:
        service.learn_from_correction(record.source_url, record, values, strategy)
    st.session_state.pop("extracted", None)
    st.success(f"Saved {row['position']} @ {row['company']}")


def page_extract() -> None:
    st.header("Add a Job")
    tab_url, tab_email = st.tabs(["From URL", "From E-mail"])

    with tab_url:
        url = st.text_input("Job posting URL", placeholder="https://boards.greenhouse.io/acme/jobs/12345")
        c1, c2 = st.columns(2)
        if c1.button("Extract", type="primary", use_container_width=True) and url:
            with st.spinner("Extracting job details…"):
                st.session_state["extracted"] = (_service().extract_job_from_url(url), "universal")
        if c2.button("Ensemble breakdown", use_container_width=True) and url:
            with st.spinner("Running every strategy…"):
                report = _service().extract_with_ensemble(url)
            if report is None:
                st.error("No strategy could read this posting.")
            else:
                st.session_state["extracted"] = (report.result.data, "ensemble")
                with st.expander("Strategies", expanded=True):
                    for r in report.result.strategies:
                        st.markdown(f"- **{r.strategy}** (weight {r.weight}): {_confidence_label(r.confidence)}")
                    st.markdown(f"Consensus: **{'yes' if report.result.consensus else 'no'}**")
                    for rec in report.score.recommendations:
                        st.caption(rec)

    with tab_email:
        text = st.text_area("Paste the e-mail", height=200)
        if st.button("Extract from e-mail", use_container_width=True) and text:
            result = _service().extract_job_from_email(text)
            if result.data is not None:
                st.session_state["extracted"] = (result.data, "text-pattern")
            elif result.error:
                st.error(result.error)

    extracted = st.session_state.get("extracted")
    if extracted:
        record, strategy = extracted
        st.divider()
        _show_extraction(record)
        _review_form(record, strategy)


# ── Page: Applications ───────────────────────────────────────────────────


def page_applications() -> None:
    st.header("Saved Applications")
    rows = get_applications(_user_id())
    if not rows:
        st.info("No applications saved yet.")
        return

    import pandas as pd

    df = pd.DataFrame(rows)
    c1, c2, c3 = st.columns(3)
    c1.metric("Total", len(df))
    c2.metric("Interviews", int((df["status"] == "Interview").sum()))
    c3.metric("Offers", int((df["status"] == "Offer").sum()))
    display_cols = ["company", "position", "salary", "location", "status", "date_applied", "job_url"]
    st.dataframe(
        df[[c for c in display_cols if c in df.columns]],
        use_container_width=True,
        column_config={"job_url": st.column_config.LinkColumn("Posting")},
        hide_index=True,
    )


# ── Page: Learning ───────────────────────────────────────────────────────


def page_learning() -> None:
    st.header("Learned Corrections")
    service = _service()
    stats = service.learning.get_learning_stats()
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Feedback", stats["total_feedback"])
    c2.metric("Domains", stats["domains_learned"])
    c3.metric("Patterns", stats["patterns_learned"])
    c4.metric("Avg accuracy", f"{stats['average_accuracy']:.0%}")

    domains = sorted({f["domain"] for f in service.learning.export_learning_data()["feedback"]})
    if not domains:
        st.info("Corrections you make before saving show up here.")
        return
    domain = st.selectbox("Domain", domains)
    insight = service.learning.get_domain_insights(domain)
    if insight:
        st.json({"field_accuracy": insight.field_accuracy, "common_corrections": insight.common_corrections})
    for p in service.learning.get_learned_patterns(domain):
        st.markdown(
            f"- `{p.field}`: {p.original_pattern} → **{p.corrected_pattern}** "
            f"(confidence {p.confidence:.1f}, used {p.usage_count}×)"
        )

    if st.button("Clear learning data"):
        service.learning.clear_learning_data()
        service.learning.save(LEARNING_PATH)
        service.clear_cache()
        st.rerun()


pages = [
    st.Page(page_extract, title="Add Job", icon="➕", url_path="extract", default=True),
    st.Page(page_applications, title="Applications", icon="📋", url_path="applications"),
    st.Page(page_learning, title="Learning", icon="🧠", url_path="learning"),
]

nav = st.navigation(pages)
nav.run()
