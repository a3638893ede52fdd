"""Tests for the selection module."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from pushscribe import selection
from pushscribe.errors import SelectionUnavailable
from pushscribe.selection import (
    AX_ERROR_NO_VALUE,
    C_KEY_CODE,
    AccessibilitySelectionReader,
    ClipboardSelectionReader,
    FallbackSelectionReader,
    QuartzCopyChord,
)

COMMAND = 0x100000
OPTION = 0x080000


class FakeClipboard:
    def __init__(self, content: str) -> None:
        self.content = content

    def copy(self, text: str) -> None:
        self.content = text

    def paste(self) -> str:
        return self.content


class FakeAX:
    """Stands in for the ApplicationServices module."""

    def __init__(self, focused_err: int = 0, text_err: int = 0, text=None) -> None:
        self.focused_err = focused_err
        self.text_err = text_err
        self.text = text
        self.queries: list[str] = []

    def AXUIElementCreateSystemWide(self):
        return "system"

    def AXUIElementCopyAttributeValue(self, element, attribute, _):
        self.queries.append(attribute)
        if attribute == "AXFocusedUIElement":
            return self.focused_err, ("focused" if self.focused_err == 0 else None)
        return self.text_err, self.text


class FakeQuartz:
    """Records posted events; physical state is modelled as held Option."""

    kCGEventSourceStatePrivate = -1
    kCGEventFlagMaskCommand = COMMAND
    kCGAnnotatedSessionEventTap = 2

    def __init__(self, on_post=None) -> None:
        self.sources: list[int] = []
        self.posted: list[dict] = []
        self.on_post = on_post

    def CGEventSourceCreate(self, state):
        self.sources.append(state)
        return SimpleNamespace(state=state)

    def CGEventCreateKeyboardEvent(self, source, key_code, key_down):
        # Events from a combined-state source would inherit held modifiers
        inherited = OPTION if source.state != self.kCGEventSourceStatePrivate else 0
        return {"key": key_code, "down": key_down, "flags": inherited}

    def CGEventSetFlags(self, event, flags):
        event["flags"] = flags

    def CGEventPost(self, tap, event):
        event["tap"] = tap
        self.posted.append(event)
        if self.on_post is not None:
            self.on_post(event)


@pytest.fixture
def clipboard(monkeypatch) -> FakeClipboard:
    board = FakeClipboard("previous contents")
    monkeypatch.setattr(selection.pyperclip, "copy", board.copy)
    monkeypatch.setattr(selection.pyperclip, "paste", board.paste)
    return board


class TestAccessibilitySelectionReader:
    """Tests for AccessibilitySelectionReader."""

    def test_reads_selected_text(self) -> None:
        ax = FakeAX(text="Hello")
        assert AccessibilitySelectionReader(ax).read_selection() == "Hello"
        assert ax.queries == ["AXFocusedUIElement", "AXSelectedText"]

    def test_empty_selection(self) -> None:
        """Test an empty or blank selection reads as nothing selected."""
        assert AccessibilitySelectionReader(FakeAX(text="")).read_selection() is None
        assert AccessibilitySelectionReader(FakeAX(text=" \n")).read_selection() is None

    def test_no_value_is_no_selection(self) -> None:
        reader = AccessibilitySelectionReader(FakeAX(text_err=AX_ERROR_NO_VALUE))
        assert reader.read_selection() is None

    def test_no_focused_element(self) -> None:
        reader = AccessibilitySelectionReader(FakeAX(focused_err=-25204))
        with pytest.raises(SelectionUnavailable):
            reader.read_selection()

    def test_unsupported_attribute(self) -> None:
        """Test elements without AXSelectedText are reported as unavailable."""
        reader = AccessibilitySelectionReader(FakeAX(text_err=-25205))
        with pytest.raises(SelectionUnavailable):
            reader.read_selection()


class TestQuartzCopyChord:
    """Tests for QuartzCopyChord."""

    def test_chord_carries_only_command(self) -> None:
        """Test a held trigger modifier does not leak into the copy chord."""
        quartz = FakeQuartz()
        QuartzCopyChord(quartz)()

        assert quartz.sources == [FakeQuartz.kCGEventSourceStatePrivate]
        assert [(e["key"], e["down"]) for e in quartz.posted] == [
            (C_KEY_CODE, True),
            (C_KEY_CODE, False),
        ]
        assert all(e["flags"] == COMMAND for e in quartz.posted)
        assert all(e["tap"] == FakeQuartz.kCGAnnotatedSessionEventTap for e in quartz.posted)


class TestClipboardSelectionReader:
    """Tests for ClipboardSelectionReader."""

    def _chord(self, clipboard: FakeClipboard, selected: str | None) -> QuartzCopyChord:
        def answer(event: dict) -> None:
            # The focused app only copies on a plain Cmd+C
            if event["down"] and event["flags"] == COMMAND and selected is not None:
                clipboard.content = selected

        return QuartzCopyChord(FakeQuartz(on_post=answer))

    def test_reads_selection_with_trigger_held(self, clipboard) -> None:
        """Test the selection is captured and the clipboard put back."""
        reader = ClipboardSelectionReader(settle_s=0, send_copy=self._chord(clipboard, "Hello"))

        assert reader.read_selection() == "Hello"
        assert clipboard.content == "previous contents"

    def test_no_selection(self, clipboard) -> None:
        """Test an unchanged sentinel means nothing was selected."""
        reader = ClipboardSelectionReader(settle_s=0, send_copy=self._chord(clipboard, None))

        assert reader.read_selection() is None
        assert clipboard.content == "previous contents"

    def test_blank_selection(self, clipboard) -> None:
        reader = ClipboardSelectionReader(settle_s=0, send_copy=self._chord(clipboard, "   "))

        assert reader.read_selection() is None

    def test_restores_on_failure(self, clipboard) -> None:
        """Test the clipboard is restored even when the chord fails."""

        def broken() -> None:
            raise OSError("not trusted")

        reader = ClipboardSelectionReader(settle_s=0, send_copy=broken)

        with pytest.raises(OSError):
            reader.read_selection()
        assert clipboard.content == "previous contents"


class StaticReader:
    def __init__(self, result=None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls = 0

    def read_selection(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


class TestFallbackSelectionReader:
    """Tests for FallbackSelectionReader."""

    def test_primary_answer_is_final(self) -> None:
        """Test 'nothing selected' from the primary does not trigger the fallback."""
        fallback = StaticReader("from clipboard")
        reader = FallbackSelectionReader(StaticReader(None), fallback)

        assert reader.read_selection() is None
        assert fallback.calls == 0

    def test_falls_back_when_unavailable(self) -> None:
        fallback = StaticReader("from clipboard")
        reader = FallbackSelectionReader(StaticReader(error=SelectionUnavailable()), fallback)

        assert reader.read_selection() == "from clipboard"
        assert fallback.calls == 1

    def test_other_errors_propagate(self) -> None:
        reader = FallbackSelectionReader(StaticReader(error=RuntimeError("boom")), StaticReader())

        with pytest.raises(RuntimeError):
            reader.read_selection()
