"""Localized startup failure notice."""
from __future__ import annotations

import sys
from typing import Dict

# Message catalogue keyed by UI language
MESSAGES: Dict[str, Dict[str, str]] = {
    "ar": {
        "title": "خطأ",
        "startup_failed": "فشل في تشغيل البرنامج:\n{cause}",
    },
    "en": {
        "title": "Error",
        "startup_failed": "The application failed to start:\n{cause}",
    },
}


def failure_message(cause: object, language: str = "ar") -> tuple[str, str]:
    """Return (title, body) for a startup failure in the given language."""
    catalogue = MESSAGES.get(language, MESSAGES["en"])
    return catalogue["title"], catalogue["startup_failed"].format(cause=cause)


def show_failure_notice(cause: object, language: str = "ar") -> None:
    """
    Show a modal error dialog describing why startup failed.

    Without a usable display (no tkinter, or no X server) the notice is
    written to stderr instead.
    """
    title, body = failure_message(cause, language)
    try:
        import tkinter as tk
        from tkinter import messagebox
    except ImportError:
        sys.stderr.write(f"{title}: {body}\n")
        return

    try:
        root = tk.Tk()
    except tk.TclError:
        sys.stderr.write(f"{title}: {body}\n")
        return

    root.withdraw()
    try:
        messagebox.showerror(title, body, parent=root)
    finally:
        root.destroy()
