"""

ModelHub Repository
Introductory remarks: This module is part of the ModelHub codebase.

"""
from __future__ import annotations

from typing import Generator

import pytest

from modelhub.webapp import create_app


@pytest.fixture()
def web_app(registry) -> Generator:
    """Provide a Flask application bound to the test registry."""
    app = create_app({"TESTING": True, "REGISTRY": registry})
    yield app


@pytest.fixture()
def client(web_app):
    """Flask test client fixture."""
    return web_app.test_client()
