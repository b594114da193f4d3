import os
import sys

import pytest

# Ensure project root is on sys.path for imports when running tests directly
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from testes.wp_tables import create_wp_db


@pytest.fixture
def db():
    database = create_wp_db()
    yield database
    database.close()
