import os

os.environ["ENV"] = "test"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.main import create_app  # noqa: E402
from tests.fixtures.lark_fixtures import *  # noqa: E402,F401,F403
from tests.fixtures.relay_fixtures import *  # noqa: E402,F401,F403


@pytest.fixture
def client(settings, message_store, completion_client, reply_sender):
    """Client wired to the test store and fake collaborators."""
    app = create_app(
        settings,
        message_store=message_store,
        completion_client=completion_client,
        reply_sender=reply_sender,
    )
    with TestClient(app) as c:
        yield c
