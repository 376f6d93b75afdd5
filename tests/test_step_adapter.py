# tests/test_step_adapter.py
# -*- coding: utf-8 -*-
"""
Tests pour steppets/services/step_adapter.py et health_poller.py

Ce fichier couvre :
- bascule automatique vers l'autre source, état "pas de données",
- changement de source instantané (les deux sources tournent),
- abonnements en lecture seule,
- valeur santé conservée en cas d'échec ou de délai dépassé.
"""

import asyncio

import pytest

from steppets.services.health_poller import HealthPoller
from steppets.services.pedometer_manager import PedometerManager
from steppets.services.step_adapter import StepSourceAdapter
from steppets.services.step_sources import (
    InMemoryPedometer,
    SourceUnavailableError,
    StepSource,
    StubHealthService,
)


class SlowHealthService(StubHealthService):
    async def steps_since_midnight(self) -> int:
        await asyncio.sleep(1)
        return self.steps


def make_adapter(repos, clock, device=None, health=None):
    device = device or InMemoryPedometer()
    health = health or StubHealthService(steps=0)
    manager = PedometerManager(device, repos.snapshots, health, key="adapter", clock=clock,
                               debounce_sec=60, health_timeout_sec=0.5)
    poller = HealthPoller(health, clock=clock, interval_sec=60, timeout_sec=0.5)
    return StepSourceAdapter(manager, poller), device, health


# -----------------------------------------------------------------------------
# Initialisation et bascule
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_preferred_source_used_when_available(repos, clock):
    adapter, device, _ = make_adapter(repos, clock)
    active = await adapter.initialize_with_fallback(StepSource.PEDOMETER)
    assert active is StepSource.PEDOMETER and adapter.last_error is None
    device.walk(12)
    assert adapter.get_steps() == 12
    await adapter.shutdown()

@pytest.mark.asyncio
async def test_falls_back_to_health_when_pedometer_missing(repos, clock):
    adapter, _, health = make_adapter(repos, clock, device=InMemoryPedometer(available=False),
                                      health=StubHealthService(steps=640))
    active = await adapter.initialize_with_fallback(StepSource.PEDOMETER)
    assert active is StepSource.HEALTH_INTEGRATION
    assert "pedometer" in adapter.last_error
    assert adapter.get_steps() == 640
    await adapter.shutdown()

@pytest.mark.asyncio
async def test_no_source_available_reports_zero(repos, clock):
    adapter, _, _ = make_adapter(repos, clock, device=InMemoryPedometer(permission_granted=False),
                                 health=StubHealthService(authorized=False))
    assert await adapter.initialize_with_fallback(StepSource.HEALTH_INTEGRATION) is None
    assert adapter.is_available is False
    assert adapter.get_steps() == 0
    await adapter.shutdown()

@pytest.mark.asyncio
async def test_initialize_raises_for_unavailable_source(repos, clock):
    adapter, _, _ = make_adapter(repos, clock, health=StubHealthService(authorized=False))
    with pytest.raises(SourceUnavailableError):
        await adapter.initialize(StepSource.HEALTH_INTEGRATION)
    await adapter.shutdown()


# -----------------------------------------------------------------------------
# Changement de source et abonnements
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_switch_source_is_instant_and_lossless(repos, clock):
    adapter, device, health = make_adapter(repos, clock, health=StubHealthService(steps=800))
    await adapter.initialize(StepSource.PEDOMETER)
    device.walk(30)

    received = []
    adapter.subscribe(received.append)
    await adapter.switch_source(StepSource.HEALTH_INTEGRATION)
    assert adapter.get_steps() == 800

    device.walk(20)  # le podomètre continue de compter en parallèle
    await adapter.switch_source(StepSource.PEDOMETER)
    assert adapter.get_steps() == 50
    assert (adapter.pedometer_steps, adapter.health_steps) == (50, 800)
    assert received == [30, 800, 50]

    adapter.unsubscribe(received.append)
    device.walk(1)
    assert received == [30, 800, 50]
    await adapter.shutdown()

@pytest.mark.asyncio
async def test_refresh_reads_health_out_of_cycle(repos, clock):
    adapter, _, health = make_adapter(repos, clock, health=StubHealthService(steps=100))
    await adapter.initialize(StepSource.HEALTH_INTEGRATION)
    health.steps = 250
    assert await adapter.refresh() == 250
    await adapter.shutdown()

@pytest.mark.asyncio
async def test_background_stops_health_polling(repos, clock):
    adapter, _, _ = make_adapter(repos, clock)
    await adapter.initialize(StepSource.HEALTH_INTEGRATION)
    assert adapter.health.running is True
    await adapter.on_app_state("background")
    assert adapter.health.running is False
    await adapter.on_app_state("active")
    assert adapter.health.running is True
    await adapter.shutdown()
    assert adapter.health.running is False


# -----------------------------------------------------------------------------
# HealthPoller
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_poller_keeps_last_value_on_failure(clock):
    service = StubHealthService(steps=500)
    poller = HealthPoller(service, clock=clock, interval_sec=60, timeout_sec=0.5)
    assert await poller.poll_once() == 500

    service.steps = 900
    service.fail_next = 1
    assert await poller.poll_once() is None
    assert poller.steps == 500
    assert await poller.poll_once() == 900

@pytest.mark.asyncio
async def test_poller_timeout_keeps_last_value(clock):
    service = SlowHealthService(steps=42)
    poller = HealthPoller(service, clock=clock, interval_sec=60, timeout_sec=0.01)
    assert await poller.poll_once() is None
    assert poller.steps == 0

@pytest.mark.asyncio
async def test_poller_value_expires_at_midnight(clock):
    poller = HealthPoller(StubHealthService(steps=3000), clock=clock, interval_sec=60)
    await poller.poll_once()
    clock.advance(days=1)
    assert poller.steps == 0


# -----------------------------------------------------------------------------
# Câblage par le conteneur
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_container_builds_working_adapter(repos, clock):
    from steppets.services.container import build_services, build_step_adapter

    device = InMemoryPedometer()
    adapter = build_step_adapter(build_services(clock=clock), device=device,
                                 health=StubHealthService(steps=70), key="container")
    adapter.health.interval_sec = 60
    assert await adapter.initialize_with_fallback(StepSource.PEDOMETER) is StepSource.PEDOMETER
    device.walk(9)
    assert adapter.get_steps() == 9
    await adapter.switch_source(StepSource.HEALTH_INTEGRATION)
    assert adapter.get_steps() == 70
    await adapter.shutdown()
    assert repos.snapshots.load("container").steps == 9
