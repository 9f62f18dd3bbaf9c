import pytest
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from liftgrade.app import app, limiter

@pytest.fixture()
def client():
    app.config.update(TESTING=True)
    limiter.enabled = False
    with app.test_client() as client:
        yield client
