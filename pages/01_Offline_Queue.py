# =============================================================================
# pages/01_Offline_Queue.py
# Operator Page - Offline Queue Status and Controls
# =============================================================================
from __future__ import annotations

import streamlit as st

from survey_core.errors import ErrorContext, safe_execute
from survey_core.offline import get_sync_engine

st.set_page_config(page_title="Offline Queue", page_icon="📦", layout="wide")

engine = get_sync_engine()
manager = engine.connection_manager
queue = engine.queue

st.title("Offline Queue")

# ============================================================================
# CONNECTION
# ============================================================================
connection = manager.get_status_display()
col1, col2, col3 = st.columns(3)
col1.metric("Device", connection["status"].title())
col2.metric("Pending responses",
            safe_execute(queue.pending_count, default=0,
                         error_message="Could not read the offline queue"))
col3.metric("Synced this session", engine.state.total_synced)

offline_mode = st.toggle(
    "Offline mode",
    value=manager.offline_mode,
    help="Keep every response on this device, even when the network is up.",
)
if offline_mode != manager.offline_mode:
    engine.set_offline_mode(offline_mode)
    st.rerun()

# ============================================================================
# ACTIONS
# ============================================================================
left, middle, right = st.columns(3)

if left.button("🔄 Sync now", disabled=manager.is_offline_path()):
    summary = engine.sync_now()
    if summary.skipped:
        st.info("A sync is already running.")
    elif summary.attempted == 0:
        st.info("Nothing to sync.")
    elif summary.failed:
        st.warning(f"Synced {summary.succeeded} of {summary.attempted} responses; "
                   f"{summary.failed} will be retried.")
    else:
        st.success(f"Synced {summary.succeeded} responses.")

if middle.button("📡 Check connection"):
    manager.check_connection()
    st.rerun()

with right.popover("🧹 Clear queue"):
    st.warning("Queued responses that were never delivered will be lost.")
    if st.button("Delete all queued responses", type="primary"):
        with ErrorContext("Clearing offline queue", show_success=True):
            queue.clear()

# ============================================================================
# QUEUE CONTENTS
# ============================================================================
st.subheader("Queued responses")
df = safe_execute(queue.to_dataframe, error_message="Could not read the offline queue")
if df is not None and not df.empty:
    st.dataframe(df, use_container_width=True, hide_index=True)
else:
    st.caption("No responses waiting on this device.")

status = queue.storage_status()
st.caption(f"Queue files use {status.usage / 1024:.1f} KB of {status.quota / 1024 ** 2:,.0f} MB available.")

with st.expander("Sync details"):
    st.json(engine.get_status_display())
    st.json(connection)
