"""Personal Stats Dashboard.

Streamlit app for browsing the coding stats, summaries and photos that the
sync functions publish to Firestore.
"""

import os

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import streamlit as st
from google.cloud import firestore

from personal_stats.store import (
    COLLECTION_FLICKR,
    COLLECTION_STATS,
    COLLECTION_SUMMARIES,
    DocumentStore,
)
from personal_stats.sync import STATS_RANGES, SUMMARY_RANGE_DAYS

RANGE_LABELS = {
    "last_7_days": "Last 7 days",
    "last_30_days": "Last 30 days",
    "last_90_days": "Last 90 days",
    "last_6_months": "Last 6 months",
    "last_year": "Last year",
}

ACCENT = "#205C50"
ACCENT_LIGHT = "#84BEA1"
HIGHLIGHT = "#F9A250"


@st.cache_resource
def get_store() -> DocumentStore:
    return DocumentStore(firestore.Client(project=os.environ.get("GOOGLE_CLOUD_PROJECT")))


@st.cache_data(ttl=300)
def load_stats(range_name: str) -> dict:
    doc = get_store().get_document(COLLECTION_STATS, range_name) or {}
    return doc.get("data") or {}


@st.cache_data(ttl=300)
def load_summaries(range_name: str) -> pd.DataFrame:
    """Daily coding totals for a summary range, one row per day."""
    doc = get_store().get_document(COLLECTION_SUMMARIES, range_name) or {}
    rows = []
    for summary in doc.get("summaries") or []:
        day = (summary.get("range") or {}).get("date")
        seconds = (summary.get("grand_total") or {}).get("total_seconds", 0)
        if day:
            rows.append({"date": day, "hours": seconds / 3600})
    df = pd.DataFrame(rows, columns=["date", "hours"])
    df["date"] = pd.to_datetime(df["date"])
    return df.sort_values("date")


@st.cache_data(ttl=300)
def load_photos() -> list:
    doc = get_store().get_document(COLLECTION_FLICKR, "widget-content") or {}
    return (doc.get("collections") or {}).get("photos") or []


def render_stats_summary(stats: dict) -> None:
    c1, c2, c3 = st.columns(3)
    c1.metric("Total", stats.get("human_readable_total", "n/a"))
    c2.metric("Daily Average", stats.get("human_readable_daily_average", "n/a"))
    best_day = stats.get("best_day") or {}
    c3.metric("Best Day", best_day.get("text", "n/a"), help=best_day.get("date"))


def render_breakdown_chart(stats: dict, key: str, title: str) -> None:
    """Horizontal bar chart for one of the stats breakdowns (languages, editors...)."""
    entries = stats.get(key) or []
    if not entries:
        st.info(f"No {key} data for this range.")
        return
    df = pd.DataFrame(entries)[["name", "percent"]].head(10).iloc[::-1]
    fig = px.bar(
        df,
        x="percent",
        y="name",
        orientation="h",
        title=title,
        labels={"percent": "% of time", "name": ""},
        color_discrete_sequence=[ACCENT],
    )
    st.plotly_chart(fig, use_container_width=True)


def render_daily_chart(df: pd.DataFrame) -> None:
    """Daily hours with a 7-day moving average."""
    ma7 = df["hours"].rolling(7, min_periods=1).mean()
    fig = go.Figure()
    fig.add_trace(go.Bar(x=df["date"], y=df["hours"], name="Hours", marker_color=ACCENT_LIGHT))
    fig.add_trace(go.Scatter(
        x=df["date"], y=ma7, mode="lines", name="7-day avg",
        line=dict(color=HIGHLIGHT, dash="dash"),
    ))
    fig.update_layout(title="Daily Coding Time", hovermode="x unified",
                      xaxis_title="Date", yaxis_title="Hours")
    st.plotly_chart(fig, use_container_width=True)


def render_photos(photos: list) -> None:
    cols = st.columns(4)
    for i, photo in enumerate(photos):
        with cols[i % 4]:
            if photo.get("thumbnailUrl"):
                st.image(photo["thumbnailUrl"], use_container_width=True)
            st.caption(f"[{photo.get('title') or 'Untitled'}]({photo.get('link')})")


def main() -> None:
    """Entry point for the Streamlit dashboard."""
    st.set_page_config(page_title="Personal Stats", page_icon="📊", layout="wide")
    st.title("📊 Personal Stats")

    st.sidebar.header("Filters")
    stats_range = st.sidebar.selectbox(
        "Stats range", STATS_RANGES, format_func=lambda r: RANGE_LABELS.get(r, r),
    )
    summary_range = st.sidebar.selectbox(
        "Summary range", list(SUMMARY_RANGE_DAYS), format_func=lambda r: RANGE_LABELS.get(r, r),
    )

    stats = load_stats(stats_range)
    if not stats:
        st.warning("No stats published for this range yet.")
    else:
        render_stats_summary(stats)
        col1, col2 = st.columns(2)
        with col1:
            render_breakdown_chart(stats, "languages", "Languages")
        with col2:
            render_breakdown_chart(stats, "editors", "Editors")

    st.divider()

    summaries = load_summaries(summary_range)
    if summaries.empty:
        st.warning("No summaries published for this range yet.")
    else:
        render_daily_chart(summaries)

    photos = load_photos()
    if photos:
        st.divider()
        st.subheader("Recent Photos")
        render_photos(photos)


if __name__ == "__main__":
    main()
