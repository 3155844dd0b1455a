"""
Test configuration for shexpr tests
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from interpreter import create_interpreter
from parsing import Tokenizer


class RecordingLogger:
  """Logger that keeps every message it is given"""

  def __init__(self):
    self.messages = []

  def print(self, message):
    self.messages.append(message)


@pytest.fixture
def session():
  """Provide a fresh session for each test"""
  return create_interpreter()


@pytest.fixture
def tokenizer():
  return Tokenizer()


@pytest.fixture
def recorder():
  return RecordingLogger()
