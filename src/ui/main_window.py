"""Main application window.

Opened once, after the database passed the readiness checks. Shows the
record count of every business table and blocks in the tkinter event loop
until the user closes it.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy import func, select

from core.config import Settings
from core.db import VERIFIED_TABLES, Base, PersistenceFactory
from core.logging_config import get_logger

LOGGER = get_logger(__name__)

WINDOW_MIN_WIDTH = 900
WINDOW_MIN_HEIGHT = 600


class MainWindow:
    """
    Top-level POS window.

    The tkinter root is created in show(), not in __init__, so the window
    can be resolved (and closed) without a display.
    """

    def __init__(self, settings: Settings, persistence: PersistenceFactory) -> None:
        self.settings = settings
        self.persistence = persistence
        self._root: Optional[Any] = None
        self.shown = False

    def table_counts(self) -> Dict[str, int]:
        """Current row count of every business table."""
        from core import models  # noqa: F401

        counts = {}
        with self.persistence.session() as session:
            for table_name in VERIFIED_TABLES:
                table = Base.metadata.tables[table_name]
                counts[table_name] = session.execute(
                    select(func.count()).select_from(table)
                ).scalar_one()
        return counts

    def show(self) -> None:
        """Build the window and run the event loop until it is closed."""
        if self.shown:
            raise RuntimeError("Main window has already been shown")
        self.shown = True

        import tkinter as tk
        from tkinter import ttk

        root = tk.Tk()
        self._root = root
        root.title(self.settings.window_title)
        root.minsize(WINDOW_MIN_WIDTH, WINDOW_MIN_HEIGHT)
        root.geometry(f"{WINDOW_MIN_WIDTH}x{WINDOW_MIN_HEIGHT}")
        root.protocol("WM_DELETE_WINDOW", self.close)

        header = ttk.Label(root, text=self.settings.window_title, font=("Segoe UI", 16, "bold"))
        header.pack(fill=tk.X, padx=12, pady=(12, 4))

        tree = ttk.Treeview(root, columns=("table", "records"), show="headings", height=len(VERIFIED_TABLES))
        tree.heading("table", text="Table")
        tree.heading("records", text="Records")
        tree.column("records", anchor=tk.E, width=120)
        for table_name, count in self.table_counts().items():
            tree.insert("", tk.END, values=(VERIFIED_TABLES[table_name], count))
        tree.pack(fill=tk.BOTH, expand=True, padx=12, pady=4)

        ttk.Button(root, text="Close", command=self.close).pack(anchor=tk.E, padx=12, pady=(4, 12))

        LOGGER.info("Main window shown")
        root.mainloop()

    def close(self) -> None:
        """Destroy the window if it is open. Safe to call more than once."""
        if self._root is not None:
            root, self._root = self._root, None
            root.destroy()
            LOGGER.info("Main window closed")
