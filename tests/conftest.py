import pytest
from dbexec.context import set_default_context


@pytest.fixture(autouse=True)
def reset_default_context():
    """Start every test with a fresh process-wide context and cache."""
    set_default_context(None)
    yield
    set_default_context(None)


pytest_plugins = [
    'tests.fixtures.stubs',
    'tests.fixtures.sqlite',
]
