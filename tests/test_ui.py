"""Tests for the failure notice and main window that do not need a display."""
from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

import pytest

from core.models import Truck
from ui.main_window import MainWindow
from ui.notice import failure_message, show_failure_notice


def test_arabic_failure_message():
    """Test the default Arabic startup failure text."""
    title, body = failure_message("Cannot connect to database", "ar")
    assert title == "خطأ"
    assert body == "فشل في تشغيل البرنامج:\nCannot connect to database"


def test_english_failure_message():
    title, body = failure_message(RuntimeError("disk full"), "en")
    assert title == "Error"
    assert body.endswith("disk full")


def test_unknown_language_falls_back_to_english():
    assert failure_message("x", "fr")[0] == "Error"


def test_notice_without_tkinter_goes_to_stderr(monkeypatch, capsys):
    """Test that the notice is written to stderr when tkinter is unavailable."""
    monkeypatch.setitem(sys.modules, "tkinter", None)
    show_failure_notice("Cannot connect to database", "en")
    assert "Cannot connect to database" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_main_window_table_counts(settings, sqlite_factory):
    """Test that the window reads counts through the shared factory."""
    async with await sqlite_factory.create_handle() as handle:
        await handle.ensure_schema_created()
    with sqlite_factory.session() as session:
        session.add(Truck(truck_number="T-07", driver_name="Omar"))

    window = MainWindow(settings, sqlite_factory)
    counts = window.table_counts()

    assert counts["trucks"] == 1
    assert counts["invoices"] == 0


def test_main_window_close_before_show(settings, sqlite_factory):
    """Test that closing a window that never opened is a no-op."""
    window = MainWindow(settings, sqlite_factory)
    window.close()
    window.close()
    assert window.shown is False


def test_main_window_show_and_close(settings, sqlite_factory):
    """Test the window lifecycle with tkinter replaced by a mock."""
    fake_tk = MagicMock()
    window = MainWindow(settings, sqlite_factory)

    with patch.dict(sys.modules, {"tkinter": fake_tk}), patch.object(
        MainWindow, "table_counts", return_value={"trucks": 2}
    ):
        window.show()
        with pytest.raises(RuntimeError):
            window.show()

    root = fake_tk.Tk.return_value
    root.title.assert_called_once_with(settings.window_title)
    root.mainloop.assert_called_once()

    window.close()
    window.close()
    root.destroy.assert_called_once()
