"""Shared test fixtures: everything runs against the in-memory store."""

from __future__ import annotations

import os

# Must be set before main/config are imported anywhere.
os.environ["FORUM_STORE"] = "memory"
os.environ["FORUM_ALLOWED_HOSTS"] = "*"

import pytest

from services.broadcast import BroadcastBus
from services.post_service import PostService
from store.memory_store import InMemoryPostStore


@pytest.fixture
def store() -> InMemoryPostStore:
    return InMemoryPostStore()


@pytest.fixture
def bus() -> BroadcastBus:
    return BroadcastBus(queue_size=16)


@pytest.fixture
def service(store: InMemoryPostStore, bus: BroadcastBus) -> PostService:
    return PostService(store, bus)


@pytest.fixture
def client():
    """TestClient with the app lifespan running, so each test gets fresh state."""
    from fastapi.testclient import TestClient

    from main import app

    with TestClient(app) as test_client:
        yield test_client


def make_post_body(title: str = "How do I deploy Node.js on Cloud Run?", **overrides: str) -> dict[str, str]:
    body = {
        "title": title,
        "content": "I'm trying to deploy my Node.js application on Google Cloud Run.",
        "author": "Rohan",
    }
    body.update(overrides)
    return body
