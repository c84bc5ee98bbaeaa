"""
Root conftest file for pytest.

This file is automatically loaded by pytest and contains setup
for making imports work correctly in tests. The environment is prepared
before any application module is imported so settings pick it up.
"""
import os
import sys
import tempfile
from pathlib import Path

# Keep tests offline and away from real data directories
os.environ["OPENAI_API_KEY"] = ""
os.environ["PERPLEXITY_API_KEY"] = ""
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="matchmaker-test-")
os.environ.setdefault("API_SECRET_KEY", "test-secret-key")

# Add the backend directory to the Python path for imports
backend_dir = str(Path(__file__).parent / "backend")
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)
