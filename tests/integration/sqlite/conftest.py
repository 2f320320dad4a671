"""
Fixtures for SQLite-specific integration tests.
"""
import pathlib

import dbexec
import pytest
from dbexec.session import dispose_all_engines


@pytest.fixture
def sqlite_file_session(tmp_path: pathlib.Path):
    """File-based SQLite session fixture for testing pooled, persistent access."""
    session = dbexec.connect({
        'drivername': 'sqlite',
        'database': str(tmp_path / 'test.db'),
        'use_pool': True,
    })

    dbexec.execute(session, 'CREATE TABLE items (x INTEGER PRIMARY KEY, label TEXT)')
    handle = dbexec.prepare(session, 'INSERT INTO items (x, label) VALUES (?, ?)')
    for x in range(1, 8):
        dbexec.execute(session, handle, values=[x, f'item{x}'])

    yield session
    dbexec.shutdown(session)
    dispose_all_engines()
