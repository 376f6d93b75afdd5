# steppets/pages/historique.py
# -*- coding: utf-8 -*-

# --- bootstrap import path (page streamlit dans steppets/pages) ---
import os, sys
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
# ------------------------------------------------------------------

import datetime as dt
import io
import altair as alt
import streamlit as st

from steppets.persistence.db import init_db
from steppets.persistence.models import Base
from steppets.persistence.repositories.profiles_repo import ProfileRepository
from steppets.persistence.repositories.steps_repo import GoalCompletionRepository
from steppets.services.history import completions_frame, period_summary, previous_period

# Boot DB
init_db(Base, drop_and_recreate=False)
profiles = ProfileRepository()
completions = GoalCompletionRepository()

st.set_page_config(page_title="Historique — StepPets", page_icon="📜", layout="wide")
st.title("📜 Historique")

# User courant ou fallback
default_email = "demo@example.com"
if "user_id" not in st.session_state or "user_email" not in st.session_state:
    p = profiles.get_or_create(default_email)
    st.session_state["user_id"] = p.id
    st.session_state["user_email"] = p.email

user_id = st.session_state["user_id"]
user_email = st.session_state["user_email"]
st.caption(f"Connecté en tant que **{user_email}** (id={user_id})")

# --- Filtres ---
st.sidebar.header("Filtres")
today = dt.date.today()
start = st.sidebar.date_input("Du", value=today - dt.timedelta(days=29))
end = st.sidebar.date_input("Au", value=today)
if start > end:
    st.warning("Vérifie les bornes : la date de début doit être ≤ à la date de fin.")
    st.stop()

rows = completions.get_range(user_id, start=start, end=end, asc=True)
if not rows:
    st.info("Aucune donnée dans cette période.")
    st.stop()

df = completions_frame(rows)
summary = period_summary(rows)

prev_start, prev_end = previous_period(start, end)
prev = period_summary(completions.get_range(user_id, start=prev_start, end=prev_end, asc=True))

# KPIs
col1, col2, col3, col4 = st.columns(4)
with col1:
    st.metric("Jours objectif atteint", f"{summary.days_met}/{summary.days}",
              delta=summary.days_met - prev.days_met)
with col2:
    st.metric("Pas moyens / jour", f"{summary.mean_steps:.0f}",
              delta=f"{summary.mean_steps - prev.mean_steps:+.0f}")
with col3:
    st.metric("Total de pas", f"{summary.total_steps:,}".replace(",", " "))
with col4:
    st.metric("Meilleure série", f"{summary.best_streak} j")

# Pas par jour, colorés selon l'objectif
steps_chart = (
    alt.Chart(df)
    .mark_bar()
    .encode(
        x=alt.X("yearmonthdate(day):T",
                title="Jour",
                axis=alt.Axis(format="%Y-%m-%d", labelAngle=-45)),
        y=alt.Y("steps:Q", title="Pas"),
        color=alt.Color("goal_met:N", title="Objectif atteint"),
        tooltip=[alt.Tooltip("day:T", title="Jour", format="%Y-%m-%d"),
                 alt.Tooltip("steps:Q", title="Pas"),
                 alt.Tooltip("goal:Q", title="Objectif"),
                 alt.Tooltip("percentage:Q", title="%")]
    )
    .properties(height=300)
)
goal_line = (
    alt.Chart(df)
    .mark_line(strokeDash=[4, 4], color="gray")
    .encode(x="yearmonthdate(day):T", y="goal:Q")
)

st.subheader("Pas par jour")
st.altair_chart(steps_chart + goal_line, use_container_width=True)

with st.expander("Voir le détail"):
    st.dataframe(df, use_container_width=True)

# Export CSV
csv_buf = io.StringIO()
df.to_csv(csv_buf, index=False)
st.download_button("⬇️ Export CSV", data=csv_buf.getvalue(), file_name="historique_steppets.csv", mime="text/csv")
