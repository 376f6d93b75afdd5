# steppets/main.py
# -*- coding: utf-8 -*-
# --- bootstrap import path (run as script via streamlit) ---
import os, sys
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
# -----------------------------------------------------------
import streamlit as st

from steppets.config import configure_logging
from steppets.persistence.db import init_db
from steppets.persistence.models import Base
from steppets.services.container import build_services
from steppets.services.progress_tracker import ProgressValidationError
from steppets.services.reward_engine import AwardError, EligibilityState, RewardKind

# ---------------------------------------------------------------------
# Bootstrapping
# ---------------------------------------------------------------------
configure_logging()
init_db(Base, drop_and_recreate=False)


@st.cache_resource
def get_services():
    return build_services()


services = get_services()

st.set_page_config(page_title="StepPets", page_icon="🐾", layout="centered")

# ---------------------------------------------------------------------
# Sidebar – Sélection / création utilisateur
# ---------------------------------------------------------------------
st.sidebar.title("👤 Utilisateur")
default_email = os.getenv("STEPPETS_DEFAULT_EMAIL", "demo@example.com")
email = st.sidebar.text_input("Email", value=default_email, help="Créé s'il n'existe pas")

if st.sidebar.button("Charger/Créer l'utilisateur"):
    p = services.profiles.get_or_create(email)
    st.session_state["user_id"] = p.id
    st.session_state["user_email"] = p.email
    st.sidebar.success(f"OK : {p.email} (id={p.id})")

# état par défaut au premier chargement
if "user_id" not in st.session_state:
    p = services.profiles.get_or_create(default_email)
    st.session_state["user_id"] = p.id
    st.session_state["user_email"] = p.email

user_id = st.session_state["user_id"]
profile = services.profiles.get(user_id)
if profile is None:
    st.session_state.pop("user_id", None)
    st.rerun()

st.caption(f"Connecté en tant que **{profile.email}** (id={user_id}) · source : {profile.step_source}")

# ---------------------------------------------------------------------
# Progression du jour
# ---------------------------------------------------------------------
st.title("🐾 StepPets — Progression du jour")

progress = services.tracker.todays_progress(user_id, profile.step_goal)
st.progress(progress.percentage / 100, text=f"{progress.steps} / {progress.goal_steps} pas ({progress.percentage} %)")

with st.form("steps_form", clear_on_submit=False):
    steps = st.number_input("Pas d'aujourd'hui", min_value=0, value=int(progress.steps), step=100)
    submitted = st.form_submit_button("Enregistrer")

if submitted:
    try:
        result = services.tracker.record_progress(user_id, int(steps), profile.step_goal)
    except ProgressValidationError as e:
        st.error(str(e))
    else:
        if result.goal_reached_now:
            st.balloons()
            st.success("🎉 Objectif du jour atteint !")
        else:
            st.success(f"✅ Enregistré : {result.steps} pas ({result.percentage} %)")

# ---------------------------------------------------------------------
# Récompenses
# ---------------------------------------------------------------------
st.header("🎁 Récompenses")
states = services.refresh_eligibility(user_id)
labels = {RewardKind.PET: "🐶 Animal", RewardKind.FURNITURE: "🛋️ Meuble"}

col1, col2 = st.columns(2)
for col, kind in zip((col1, col2), (RewardKind.PET, RewardKind.FURNITURE)):
    e = states[kind]
    with col:
        st.subheader(labels[kind])
        st.metric("Série en cours", f"{e.current_streak} j", help=f"{e.total_earned} déjà obtenu(s)")
        if e.state is EligibilityState.ELIGIBLE:
            if st.button("Débloquer", key=f"award_{kind.value}"):
                res = services.rewards.award(user_id, kind)
                if res.success:
                    st.success(res.message)
                    st.rerun()
                elif res.error is AwardError.PERSISTENCE_ERROR:
                    st.warning(res.message)
                else:
                    st.info(res.message)
        elif e.state is EligibilityState.AWARDED_TODAY:
            st.info("Déjà obtenu aujourd'hui, reviens demain !")
        elif not e.goal_met_today and e.days_remaining == 0:
            st.info("Atteins ton objectif du jour pour débloquer.")
        else:
            st.info(f"Encore {e.days_remaining} jour(s) de série.")

# ---------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------
st.header("🏠 Ma collection")
my_pets = services.pets.list_for_user(user_id)
my_furniture = services.furniture.list_for_user(user_id)
if not my_pets and not my_furniture:
    st.write("Rien pour l'instant.")
for up in my_pets:
    st.write(f"🐾 **{up.custom_name or up.pet.name}** — obtenu le {up.created_at:%Y-%m-%d}")
for uf in my_furniture:
    st.write(f"🪑 {uf.furniture.name} — obtenu le {uf.created_at:%Y-%m-%d}")
