"""Desktop UI: the main window and the startup failure notice."""
from __future__ import annotations

from ui.notice import failure_message, show_failure_notice

__all__ = ["failure_message", "show_failure_notice"]
