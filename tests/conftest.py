from __future__ import annotations

import pytest

from fakes import FakeClock, FakeGateway, FakeLedger, FakeOneSec, USER
from onesec_bridge.principal import IcrcAccount
from onesec_bridge.steps import base


@pytest.fixture
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr(base.time, "sleep", fake.sleep)
    monkeypatch.setattr(base.time, "monotonic", fake.monotonic)
    return fake


@pytest.fixture
def onesec():
    return FakeOneSec()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def receiver():
    return IcrcAccount(owner=USER)
