# steppets/pages/profil.py
# -*- coding: utf-8 -*-

# --- bootstrap import path (page streamlit dans steppets/pages) ---
import os, sys
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
# ------------------------------------------------------------------

import streamlit as st

from steppets.persistence.db import init_db
from steppets.persistence.models import Base
from steppets.persistence.repositories.profiles_repo import ProfileRepository
from steppets.persistence.repositories.rewards_repo import UserFurnitureRepository, UserPetRepository
from steppets.services.step_sources import StepSource

# Boot DB (no drop)
init_db(Base, drop_and_recreate=False)
profiles = ProfileRepository()
pets = UserPetRepository()
furniture = UserFurnitureRepository()

st.set_page_config(page_title="Profil — StepPets", page_icon="👤", layout="centered")
st.title("👤 Profil")

# Récup user courant (depuis main) ou fallback
default_email = "demo@example.com"
if "user_id" not in st.session_state or "user_email" not in st.session_state:
    p = profiles.get_or_create(default_email)
    st.session_state["user_id"] = p.id
    st.session_state["user_email"] = p.email

user_id = st.session_state["user_id"]
p = profiles.get(user_id)
st.caption(f"Connecté en tant que **{p.email}** (id={user_id})")

# --- Carte d'infos utilisateur ---
colA, colB = st.columns(2)
with colA:
    st.subheader("Informations")
    st.write(f"**Email :** {p.email}")
    st.write(f"**Créé le :** {p.created_at.strftime('%Y-%m-%d %H:%M')}")
    st.write(f"**Série (dernier calcul) :** {p.current_streak} j"
             + (f" au {p.last_streak_update}" if p.last_streak_update else ""))

with colB:
    st.subheader("Réglages")
    goal = st.number_input("Objectif quotidien (pas)", min_value=1, value=int(p.step_goal), step=500)
    if goal != p.step_goal:
        profiles.set_step_goal(user_id, int(goal))
        st.success(f"Objectif mis à jour → {goal}")
        st.rerun()

    sources = [StepSource.PEDOMETER, StepSource.HEALTH_INTEGRATION]
    current = StepSource.from_profile(p.step_source)
    choice = st.radio("Source des pas", options=sources, index=sources.index(current),
                      format_func=lambda s: "Podomètre" if s is StepSource.PEDOMETER else "Intégration santé")
    if choice is not current:
        profiles.set_step_source(user_id, choice.value)
        st.success(f"Source mise à jour → {choice.value}")
        st.rerun()

# --- Animaux ---
st.subheader("🐾 Mes animaux")
my_pets = pets.list_for_user(user_id)
if not my_pets:
    st.write("Aucun animal pour l'instant.")
for up in my_pets:
    with st.form(f"pet_{up.id}"):
        name = st.text_input(f"{up.pet.name} (obtenu le {up.created_at:%Y-%m-%d})",
                             value=up.custom_name or "", placeholder=up.pet.name)
        if st.form_submit_button("Renommer"):
            pets.set_custom_name(up.id, user_id, name)
            st.rerun()

# --- Meubles ---
st.subheader("🛋️ Mes meubles")
my_furniture = furniture.list_for_user(user_id)
if not my_furniture:
    st.write("Aucun meuble pour l'instant.")
pet_labels = {None: "—"} | {up.id: up.custom_name or up.pet.name for up in my_pets}
for uf in my_furniture:
    options = list(pet_labels)
    placed = st.selectbox(f"{uf.furniture.name} : placé près de", options=options,
                          index=options.index(uf.user_pet_id) if uf.user_pet_id in pet_labels else 0,
                          format_func=lambda k: pet_labels[k], key=f"furn_{uf.id}")
    if placed != uf.user_pet_id:
        furniture.place_with_pet(uf.id, user_id, placed)
        st.rerun()
