# tests/test_pedometer_manager.py
# -*- coding: utf-8 -*-
"""
Tests pour steppets/services/pedometer_manager.py

Ce fichier couvre :
- compteur monotone (deltas positifs seulement, appliqués une fois),
- sauvegarde différée puis écriture immédiate au passage en arrière-plan,
- rattrapage des pas manqués : L + (H2 - H1), sans double application,
- remise à zéro au changement de jour,
- capteur absent / permission refusée.
"""

import asyncio
import datetime as dt

import pytest

from steppets.services.pedometer_manager import PedometerManager
from steppets.services.step_sources import InMemoryPedometer, SourceUnavailableError, StubHealthService


@pytest.fixture
def device():
    return InMemoryPedometer()


@pytest.fixture
def health():
    return StubHealthService(steps=100)


def make_manager(repos, device, health, clock, debounce_sec=0.05):
    return PedometerManager(device, repos.snapshots, health, key="test", clock=clock,
                            debounce_sec=debounce_sec, health_timeout_sec=0.5)


# -----------------------------------------------------------------------------
# Compteur
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_counter_applies_positive_deltas_once(repos, device, health, clock):
    m = make_manager(repos, device, health, clock)
    await m.initialize()
    seen = []
    m.add_listener(seen.append)

    device.emit(100)
    device.emit(100)   # répétition : rien
    device.emit(40)    # retour en arrière du capteur : ignoré
    device.walk(10)    # cumul 50 depuis le retour en arrière : +10
    assert m.current_steps == 110
    assert seen == [0, 100, 110]
    assert all(b >= a for a, b in zip(seen, seen[1:]))
    await m.cleanup()

@pytest.mark.asyncio
async def test_initialize_is_idempotent(repos, device, health, clock):
    m = make_manager(repos, device, health, clock)
    await m.initialize()
    await m.initialize()
    device.walk(5)
    assert m.current_steps == 5  # un seul abonnement capteur
    await m.cleanup()
    assert device.watching is False

@pytest.mark.asyncio
async def test_unavailable_sensor_or_denied_permission(repos, health, clock):
    with pytest.raises(SourceUnavailableError):
        await make_manager(repos, InMemoryPedometer(available=False), health, clock).initialize()
    with pytest.raises(SourceUnavailableError):
        await make_manager(repos, InMemoryPedometer(permission_granted=False), health, clock).initialize()


# -----------------------------------------------------------------------------
# Persistance
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_debounced_persist_writes_after_quiet_period(repos, device, health, clock):
    m = make_manager(repos, device, health, clock)
    await m.initialize()
    device.walk(30)
    assert m.has_pending_persist is True
    assert repos.snapshots.load("test").steps == 0

    await asyncio.sleep(0.15)
    snap = repos.snapshots.load("test")
    assert m.has_pending_persist is False
    assert (snap.steps, snap.health_snapshot) == (30, None)
    await m.cleanup()

@pytest.mark.asyncio
async def test_background_flushes_immediately_with_health_pair(repos, device, health, clock):
    m = make_manager(repos, device, health, clock, debounce_sec=60)
    await m.initialize()
    device.walk(25)
    assert m.has_pending_persist is True

    await m.handle_app_state("background")
    snap = repos.snapshots.load("test")
    assert m.has_pending_persist is False
    assert (snap.steps, snap.snapshot_date, snap.health_snapshot) == (25, clock.today(), 100)
    await m.cleanup()

@pytest.mark.asyncio
async def test_steps_restored_same_day(repos, device, health, clock):
    repos.snapshots.save("test", 420, clock.today())
    m = make_manager(repos, device, health, clock)
    await m.initialize()
    assert m.current_steps == 420
    await m.cleanup()


# -----------------------------------------------------------------------------
# Rattrapage des pas manqués
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_missed_steps_reconciled_once(repos, device, health, clock):
    m = make_manager(repos, device, health, clock)
    await m.initialize()
    device.walk(50)
    await m.handle_app_state("background")   # paire (50, santé=100)
    await m.cleanup()

    # processus tué ; 300 pas comptés par la plateforme entre-temps
    health.steps = 400
    restarted = make_manager(repos, InMemoryPedometer(), health, clock)
    await restarted.initialize()
    assert restarted.current_steps == 50 + (400 - 100)
    assert repos.snapshots.load("test").health_snapshot == 400

    # un second retour au premier plan n'ajoute rien
    assert await restarted.sync_missed_steps() == 0
    await restarted.handle_app_state("active")
    assert restarted.current_steps == 350
    await restarted.cleanup()

@pytest.mark.asyncio
async def test_steps_delivered_in_background_not_counted_twice(repos, device, health, clock):
    m = make_manager(repos, device, health, clock, debounce_sec=60)
    await m.initialize()
    device.walk(50)
    await m.handle_app_state("background")   # paire (50, santé=100)

    # le capteur livre encore 20 pas avant la sauvegarde différée,
    # déjà comptés aussi par la plateforme santé
    device.walk(20)
    assert m.current_steps == 70
    health.steps = 400
    await m.handle_app_state("active")
    assert m.current_steps == 50 + (400 - 100)
    assert repos.snapshots.load("test").steps == 350
    await m.cleanup()

@pytest.mark.asyncio
async def test_reconciliation_never_lowers_counter(repos, device, health, clock):
    m = make_manager(repos, device, health, clock, debounce_sec=60)
    await m.initialize()
    device.walk(50)
    await m.handle_app_state("background")
    device.walk(20)   # santé pas encore à jour
    assert await m.sync_missed_steps() == 0
    assert m.current_steps == 70
    await m.cleanup()

@pytest.mark.asyncio
async def test_no_reconciliation_without_health_pair(repos, device, health, clock):
    repos.snapshots.save("test", 80, clock.today(), health_snapshot=None)
    health.steps = 5000
    m = make_manager(repos, device, health, clock)
    await m.initialize()
    assert m.current_steps == 80
    await m.cleanup()

@pytest.mark.asyncio
async def test_health_failure_keeps_counter(repos, device, health, clock):
    repos.snapshots.save("test", 80, clock.today(), health_snapshot=100)
    health.steps = 900
    health.fail_next = 1
    m = make_manager(repos, device, health, clock)
    await m.initialize()
    assert m.current_steps == 80
    # la lecture suivante réussit : le rattrapage a lieu
    assert await m.sync_missed_steps() == 800
    assert m.current_steps == 880
    await m.cleanup()


# -----------------------------------------------------------------------------
# Changement de jour
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_day_rollover_resets_counter(repos, device, health, clock):
    m = make_manager(repos, device, health, clock)
    await m.initialize()
    device.walk(700)
    await m.handle_app_state("background")

    clock.advance(days=1)
    assert m.current_steps == 0
    device.walk(5)
    assert m.current_steps == 5
    await m.cleanup()

@pytest.mark.asyncio
async def test_snapshot_from_previous_day_not_carried_over(repos, device, health, clock):
    yesterday = clock.today() - dt.timedelta(days=1)
    repos.snapshots.save("test", 9000, yesterday, health_snapshot=50)
    health.steps = 300
    m = make_manager(repos, device, health, clock)
    await m.initialize()
    assert m.current_steps == 0
    assert repos.snapshots.load("test").snapshot_date == clock.today()
    await m.cleanup()
