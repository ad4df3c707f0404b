import pytest

from bindx import runtime


@pytest.fixture(autouse=True)
def _fresh_runtime():
    """Each test gets its own default registry, watchers and batch queue."""
    runtime.reset()
    yield
    runtime.reset()
