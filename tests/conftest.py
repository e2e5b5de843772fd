"""
Test configuration shared by every test package
"""
import sys
from pathlib import Path

# Make the src layout importable without an editable install
project_root = Path(__file__).parent.parent
src_path = project_root / "src"

sys.path.insert(0, str(src_path))
