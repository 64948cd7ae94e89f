import os
import sys
import warnings
from pathlib import Path

warnings.filterwarnings("ignore", category=DeprecationWarning, module="beanie.*")

# Provider calls are stubbed unless a test says otherwise
os.environ.setdefault("DEMO_MODE", "true")

PROJECT_ROOT = Path(__file__).resolve().parents[1]
root_str = str(PROJECT_ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from tests.fixtures.fakes import *  # noqa: E402, F403
from tests.fixtures.mongo_fixtures import *  # noqa: E402, F403
