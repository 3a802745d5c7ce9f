"""Desktop application entrypoint.

Runs the readiness checks and opens the main window, or shows the
localized failure notice. The process exit code reports the result.
"""
from __future__ import annotations

import sys
from pathlib import Path

# Add src directory to python path if running as script
if __name__ == "__main__":
    src_path = Path(__file__).parent
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))

from core.bootstrap import main as run_application


def main() -> None:
    """Start the application and exit with its exit code."""
    sys.exit(run_application(show_ui=True))


if __name__ == "__main__":
    main()
