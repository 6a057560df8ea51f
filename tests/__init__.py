"""Test package for the serverhop library."""

import sys
from pathlib import Path

# Add the source root to the Python path
project_root = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(project_root))
