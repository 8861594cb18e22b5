import os

import pytest
from hypothesis import settings

settings.register_profile("ci", max_examples=200, deadline=None)
settings.register_profile("dev", max_examples=25, deadline=None)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


@pytest.fixture(autouse=True)
def _hermetic_engine_env(monkeypatch):
    """
    Strip ERC6909X_* variables from the environment and reset the cached
    global config, so a developer's shell cannot change signing domains or
    metric gating under the tests.
    """
    from erc6909x.config import get_config

    for name in list(os.environ):
        if name.startswith("ERC6909X_"):
            monkeypatch.delenv(name, raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()
