import pytest

from cvpipeline.config import RECOGNIZED_VARS, PipelineEnv
from cvpipeline.resolver import resolve
from cvpipeline.ui.console import Console, set_console


@pytest.fixture(autouse=True)
def clean_environ(monkeypatch):
    """Tests may run inside a CI job; never let its variables leak in."""
    for name in RECOGNIZED_VARS:
        monkeypatch.delenv(name, raising=False)
    set_console(Console())
    yield


@pytest.fixture
def make_resolved():
    """Build a ResolvedJob from a dict of environment variables."""
    def _make(**env):
        env.setdefault("JOB_NAME", "kv_engine.linux/master")
        return resolve(PipelineEnv.from_environ({k: str(v) for k, v in env.items()}))
    return _make
