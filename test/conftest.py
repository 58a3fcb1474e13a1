"""
Test configuration for Tiny Language tests
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config import TinyLangConfig


@pytest.fixture
def test_data_dir():
  return project_root / "test_data"


@pytest.fixture
def small_config():
  """8-bit integers, so overflow is easy to reach"""
  return TinyLangConfig(int_bits=8)
