# streamlit_ui.py: operator console (rules, run now, execution log)

import os
import json

import streamlit as st
from dotenv import load_dotenv
import httpx
import pandas as pd

# Load .env
load_dotenv()

DEFAULT_BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:8000")


def api_get(base: str, path: str, **params):
    with httpx.Client(timeout=30, follow_redirects=True) as client:
        resp = client.get(base.rstrip("/") + path, params=params)
        resp.raise_for_status()
        return resp.json()


def api_post(base: str, path: str, payload=None, timeout: float = 30):
    with httpx.Client(timeout=timeout, follow_redirects=True) as client:
        return client.post(base.rstrip("/") + path, json=payload)


st.set_page_config(page_title="DealSync – Operator Console", page_icon="🛍️", layout="wide")
st.title("🛍️ DealSync • Rules & Execution Log")

backend_url = st.text_input(
    "FastAPI backend URL",
    value=DEFAULT_BACKEND_URL,
    help="Your FastAPI base URL (e.g., http://localhost:8000)"
)

st.divider()

try:
    rules = api_get(backend_url, "/v1/rules/")
except httpx.HTTPError as e:
    st.error(f"Failed to reach backend: {e}")
    st.stop()

if not rules:
    st.info("No rules defined yet.")
    st.stop()

rules_df = pd.DataFrame(rules)
st.markdown("### Rules")
st.dataframe(
    rules_df[["id", "name", "keywords", "min_price", "max_price", "min_discount", "schedule_cron", "is_active", "last_run"]],
    use_container_width=True,
    hide_index=True,
)

col_rule, col_btn = st.columns([4, 1])
with col_rule:
    labels = {f"#{r['id']} {r['name']}": r["id"] for r in rules}
    choice = st.selectbox("Rule", list(labels))
with col_btn:
    do_run = st.button("Run now", use_container_width=True)

if do_run:
    rule_id = labels[choice]
    with st.spinner("Searching and reconciling…"):
        try:
            # a run searches every keyword; allow for it
            resp = api_post(backend_url, f"/v1/rules/{rule_id}/run", timeout=600)
        except httpx.HTTPError as e:
            st.error(f"Failed to reach backend: {e}")
            st.stop()

    if resp.status_code == 409:
        st.warning("This rule is already running. Try again when it finishes.")
    elif resp.status_code != 200:
        st.error(f"Backend error ({resp.status_code}): {resp.text}")
    else:
        data = resp.json()
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Found", data["found"])
        c2.metric("Added", data["added"])
        c3.metric("Updated", data["updated"])
        c4.metric("Removed", data["removed"])
        if data.get("error"):
            st.error(data["error"])
        with st.expander("Raw response (debug)"):
            st.code(json.dumps(data, indent=2))

st.divider()

st.markdown("### Execution log")
page = st.number_input("Page", min_value=1, value=1, step=1)
try:
    log_page = api_get(backend_url, "/v1/logs", page=int(page), limit=50)
except httpx.HTTPError as e:
    st.error(f"Failed to load logs: {e}")
    st.stop()

logs = log_page.get("logs", [])
if logs:
    logs_df = pd.DataFrame(logs)
    status_rank = {"error": 0, "success": 1}
    logs_df["status_rank"] = logs_df["status"].map(status_rank).fillna(99).astype(int)
    st.dataframe(
        logs_df[["created_at", "rule_name", "status", "items_found", "items_added",
                 "items_updated", "items_removed", "error_message"]],
        use_container_width=True,
        hide_index=True,
    )
    st.caption(
        f"Page {log_page['pagination']['page']} of {max(log_page['pagination']['pages'], 1)} "
        f"· {log_page['pagination']['total']} executions, "
        f"{int((logs_df['status_rank'] == 0).sum())} errors on this page"
    )
else:
    st.info("No executions recorded yet.")

st.divider()

st.markdown("### Undo an over-eager eviction")
hours = st.slider("Restore deals deactivated in the last N hours", min_value=1, max_value=168, value=24)
if st.button("Restore"):
    resp = api_post(backend_url, "/v1/deals/restore-recent", {"hours": hours})
    if resp.status_code == 200:
        st.success(resp.json()["message"])
    else:
        st.error(f"Backend error ({resp.status_code}): {resp.text}")
