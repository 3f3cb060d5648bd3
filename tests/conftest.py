"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from datetime import datetime
from pathlib import Path

# keep the purge job and real databases out of the test run
os.environ.setdefault("SCHEDULER_ENABLED", "0")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test_secret_key_for_testing_only")
os.environ.setdefault("LOTTERY_TZ", "Asia/Kolkata")

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from pytz import timezone

import admin
from admission import AdmissionPipeline, SubmitRequest
from app import create_app
from models import db

TZ = timezone("Asia/Kolkata")

WINDOWS = {
    "DEAR 1 PM": ("12:55", "13:05"),
    "KERALA 3 PM": ("14:55", "15:05"),
    "DEAR 6 PM": ("17:55", "18:05"),
    "DEAR 8 PM": ("19:55", "20:05"),
}

LIMITS = {
    "group1": {"A": "100", "B": "100", "C": "100"},
    "group2": {"AB": "100", "BC": "100", "AC": "100"},
    "group3": {"SUPER": "50", "BOX": "50"},
}


def at(hour, minute=0, year=2025, month=1, day=10):
    """Aware datetime in the lottery zone."""
    return TZ.localize(datetime(year, month, day, hour, minute))


class FakeClock:
    def __init__(self, value):
        self.value = value

    def __call__(self):
        return self.value

    def set(self, hour, minute=0, **kwargs):
        self.value = at(hour, minute, **kwargs)


@pytest.fixture
def clock():
    return FakeClock(at(10, 0))


@pytest.fixture
def app(clock):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "SCHEDULER_ENABLED": False,
        "CLOCK": clock,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def seed_windows(roles=("sub", "master")):
    admin.set_block_times([
        {"drawLabel": draw, "type": role, "blockTime": block, "unblockTime": unblock}
        for draw, (block, unblock) in WINDOWS.items()
        for role in roles
    ])


def seed_limits(**groups):
    limits = {name: dict(values) for name, values in LIMITS.items()}
    for name, values in groups.items():
        limits[name].update(values)
    return admin.save_ticket_limit(limits["group1"], limits["group2"], limits["group3"], "admin")


@pytest.fixture
def configured(app):
    """Windows for every draw plus the default ticket limits."""
    seed_windows()
    seed_limits()
    return app


@pytest.fixture
def submit(clock):
    def _submit(entries, agent="agent1", role="sub", draw="DEAR 1 PM", bill_start=1):
        pipeline = AdmissionPipeline(clock=clock, bill_start=bill_start)
        return pipeline.submit(SubmitRequest.from_dict({
            "loggedInUser": agent,
            "loggedInUserType": role,
            "timeLabel": draw,
            "entries": entries,
        }))
    return _submit
