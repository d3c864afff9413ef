import os
from typing import Generator

import pytest
import yaml

from protohack.core.models.config import ServerConfig
from protohack.core.models.state import ServerState
from tests.fake.fake_handler import UpperHandler
from tests.fake.fake_transport import FakeTransport
from tests.helpers import FakeProtohackConfig


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def server_state():
    return ServerState()


@pytest.fixture
def config():
    return ServerConfig(
        handler_factory=UpperHandler,
        host="127.0.0.1",
        port=0,
        backlog=10,
        max_buffer_size=1024,
        timeout_graceful_shutdown=1.0,
    )


@pytest.fixture
def config_file(tmp_path):
    file = tmp_path / "protohack.yaml"

    data = {
        "solution": "means-to-an-end",
        "server": {
            "host": "127.0.0.1",
            "port": 0,
            "backlog": 10,
            "max_buffer_size": 4096,
            "timeout_graceful_shutdown": 1,
        },
    }

    file.write_text(yaml.dump(data))
    return file


@pytest.fixture
def config_env(config_file) -> Generator[None, None, None]:
    backup = os.environ.copy()

    try:
        os.environ["TEST_PROTOHACK_CONFIG"] = str(config_file)
        yield
    finally:
        os.environ.clear()
        os.environ.update(backup)


@pytest.fixture
def protohack_config(config_env) -> FakeProtohackConfig:
    return FakeProtohackConfig()
