"""Hosted entry point: ``streamlit run streamlit_app.py`` from a source checkout.

Works without ``pip install``; the package is loaded from ``src/``.
"""

import sys
from pathlib import Path

SRC_DIR = Path(__file__).resolve().parent / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from ahi_calc.app import main  # noqa: E402

main()
