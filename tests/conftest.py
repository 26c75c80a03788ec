from pathlib import Path

import pytest

import agentloop.config as config_module
from agentloop.config import Config, set_config


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path):
    previous = config_module._config
    cfg = Config()
    cfg.history.path = str(tmp_path / "agents")
    cfg.console.colors = False
    cfg.console.log_dir = ""
    cfg.debug.enabled = False
    set_config(cfg)
    try:
        yield cfg
    finally:
        config_module._config = previous
