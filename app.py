# =============================================================================
# app.py
# Client Satisfaction Survey - Kiosk Form
# =============================================================================
from __future__ import annotations
import datetime

import streamlit as st

from survey_core.errors import handle_error
from survey_core.logging import setup_logging
from survey_core.offline import SubmitOutcome, get_sync_engine
from survey_core.survey import build_response
from survey_core.survey.questions import DEFAULT_QUESTIONS, LIKERT_CHOICES

st.set_page_config(
    page_title="Client Satisfaction Survey",
    page_icon="📝",
    layout="centered",
)


@st.cache_resource
def _bootstrap():
    setup_logging()
    return get_sync_engine()


engine = _bootstrap()

OUTCOME_MESSAGES = {
    SubmitOutcome.DELIVERED: "Thank you! Your response has been submitted.",
    SubmitOutcome.SAVED_OFFLINE: "Thank you! Your response was saved on this device "
                                 "and will be sent when the connection returns.",
    SubmitOutcome.SAVED_OFFLINE_FALLBACK: "Thank you! Your response was saved on this device "
                                          "and will be sent automatically.",
}

st.title("Client Satisfaction Survey")

if engine.connection_manager.is_offline_path():
    st.info("📴 Offline - responses are kept on this device until the connection returns.")

if "last_reference_id" in st.session_state:
    st.success(st.session_state.pop("last_message"))
    st.code(st.session_state.pop("last_reference_id"), language=None)

likert_labels = dict(LIKERT_CHOICES)

with st.form("survey_form", clear_on_submit=True):
    st.subheader("Client Information")
    form_data = {
        "clientType": st.selectbox("Client type", ["citizen", "business", "government"]),
        "date": st.date_input("Date", value=datetime.date.today()).isoformat(),
        "sex": st.radio("Sex", ["Male", "Female"], horizontal=True),
        "age": str(st.number_input("Age", min_value=0, max_value=120, value=30)),
        "region": st.text_input("Region of residence"),
        "service": st.text_input("Service availed"),
        "serviceOther": "",
    }

    st.subheader("Citizen's Charter")
    for question in [q for q in DEFAULT_QUESTIONS if q["category"] == "CC"]:
        form_data[question["id"]] = st.radio(question["text"], question["choices"])

    st.subheader("Service Quality")
    for question in [q for q in DEFAULT_QUESTIONS if q["category"] == "SQD"]:
        form_data[question["id"]] = st.radio(
            question["text"],
            list(likert_labels),
            format_func=likert_labels.get,
            horizontal=True,
            key=question["id"],
        )

    form_data["suggestions"] = st.text_area("Suggestions (optional)")
    form_data["email"] = st.text_input("Email address (optional)")

    submitted = st.form_submit_button("Submit")

if submitted:
    response = build_response(form_data, DEFAULT_QUESTIONS)
    result = engine.submit(response)
    if result.success:
        st.session_state["last_message"] = OUTCOME_MESSAGES[result.outcome]
        st.session_state["last_reference_id"] = response["refId"]
        st.rerun()
    else:
        handle_error(result.error)
