from typing import Callable, List, Optional, Sequence

import pytest

from voicetype.config import VoiceTypeConfig
from voicetype.input.injector import InjectionMethod, TextInjector
from voicetype.input.window import WindowContext

X11 = {"XDG_SESSION_TYPE": "x11"}
WAYLAND = {"XDG_SESSION_TYPE": "wayland"}

TERMINAL = WindowContext(wm_class="gnome-terminal-server Gnome-terminal", title="~")
EDITOR = WindowContext(wm_class="gedit", title="notes.txt")


class FakeRunner:
    """Records every tool call; ``fails`` decides which calls exit non-zero."""

    def __init__(self, fails: Optional[Callable[[List[str]], bool]] = None) -> None:
        self.fails = fails or (lambda argv: False)
        self.calls: List[List[str]] = []
        self.inputs: List[Optional[str]] = []
        self.detached: List[bool] = []
        self.timeout = 5.0

    def run(self, argv: Sequence[str], input_text=None, timeout=None, detach=False) -> bool:
        argv = list(argv)
        self.calls.append(argv)
        self.inputs.append(input_text)
        self.detached.append(detach)
        return not self.fails(argv)

    def tools_called(self) -> List[str]:
        return [" ".join(call[:2]) for call in self.calls]


def make_injector(runner, environ, clipboard_sink=None, debug_sink=None) -> TextInjector:
    return TextInjector(
        runner=runner,
        clipboard_sink=clipboard_sink,
        debug_sink=debug_sink,
        environ=environ,
        settle_delay=0,
    )


def test_standard_paste_for_regular_window_on_x11() -> None:
    runner = FakeRunner()
    outcome = make_injector(runner, X11).inject("hello world", EDITOR, VoiceTypeConfig())

    assert outcome.method_used == InjectionMethod.STANDARD_PASTE
    assert outcome.succeeded is True
    assert outcome.attempts == (InjectionMethod.STANDARD_PASTE,)
    assert runner.calls == [
        ["xclip", "-selection", "clipboard"],
        ["xclip", "-selection", "primary"],
        ["xdotool", "key", "--clearmodifiers", "ctrl+v"],
    ]
    assert runner.inputs[:2] == ["hello world", "hello world"]
    assert runner.detached[:2] == [True, True]


def test_short_text_is_typed_into_terminal() -> None:
    runner = FakeRunner()
    outcome = make_injector(runner, X11).inject("ls -la", TERMINAL, VoiceTypeConfig())

    assert outcome.method_used == InjectionMethod.DIRECT_TYPE
    assert runner.calls == [
        ["xdotool", "type", "--clearmodifiers", "--delay", "8", "--", "ls -la"],
    ]


def test_long_text_skips_direct_typing() -> None:
    runner = FakeRunner()
    config = VoiceTypeConfig(type_chunk_threshold=10)

    outcome = make_injector(runner, X11).inject("a" * 10, TERMINAL, config)

    assert outcome.method_used == InjectionMethod.TERMINAL_PASTE_COMBO
    assert outcome.attempts == (InjectionMethod.TERMINAL_PASTE_COMBO,)
    assert ["xdotool", "key", "--clearmodifiers", "ctrl+shift+v"] in runner.calls
    assert not any(call[:2] == ["xdotool", "type"] for call in runner.calls)


def test_terminal_chain_falls_back_to_middle_click_on_x11() -> None:
    runner = FakeRunner(fails=lambda argv: argv[0] == "xdotool" and argv[1] in ("type", "key"))

    outcome = make_injector(runner, X11).inject("echo hi", TERMINAL, VoiceTypeConfig())

    assert outcome.method_used == InjectionMethod.MIDDLE_CLICK
    assert outcome.attempts == (
        InjectionMethod.DIRECT_TYPE,
        InjectionMethod.TERMINAL_PASTE_COMBO,
        InjectionMethod.MIDDLE_CLICK,
    )
    assert runner.calls[-1] == ["xdotool", "click", "2"]


def test_terminal_chain_uses_shift_insert_on_wayland() -> None:
    ctrl_shift_v = ["ydotool", "key", "29:1", "42:1", "47:1", "47:0", "42:0", "29:0"]
    runner = FakeRunner(fails=lambda argv: argv[:2] == ["ydotool", "type"] or argv == ctrl_shift_v)

    outcome = make_injector(runner, WAYLAND).inject("echo hi", TERMINAL, VoiceTypeConfig())

    assert outcome.method_used == InjectionMethod.MIDDLE_CLICK
    assert runner.calls[0] == ["ydotool", "type", "-d", "8", "--", "echo hi"]
    assert runner.calls[-1] == ["ydotool", "key", "42:1", "110:1", "110:0", "42:0"]
    assert ["wl-copy"] in runner.calls
    assert ["wl-copy", "--primary"] in runner.calls


def test_standard_paste_on_wayland() -> None:
    runner = FakeRunner()
    outcome = make_injector(runner, WAYLAND).inject("hello", EDITOR, VoiceTypeConfig())

    assert outcome.method_used == InjectionMethod.STANDARD_PASTE
    assert runner.calls[-1] == ["ydotool", "key", "29:1", "47:1", "47:0", "29:0"]


def test_full_chain_order_when_every_tool_fails() -> None:
    runner = FakeRunner(fails=lambda argv: True)
    copied = []

    outcome = make_injector(runner, X11, clipboard_sink=copied.append).inject(
        "echo hi", TERMINAL, VoiceTypeConfig()
    )

    assert outcome.method_used == InjectionMethod.CLIPBOARD_ONLY
    assert outcome.succeeded is True
    assert outcome.attempts == (
        InjectionMethod.DIRECT_TYPE,
        InjectionMethod.TERMINAL_PASTE_COMBO,
        InjectionMethod.MIDDLE_CLICK,
        InjectionMethod.STANDARD_PASTE,
        InjectionMethod.CLIPBOARD_ONLY,
    )
    assert copied == ["echo hi"]


def test_clipboard_failure_fails_paste_strategy() -> None:
    runner = FakeRunner(fails=lambda argv: argv[0] in ("xclip", "xsel"))
    copied = []

    outcome = make_injector(runner, X11, clipboard_sink=copied.append).inject(
        "hello", EDITOR, VoiceTypeConfig()
    )

    assert outcome.method_used == InjectionMethod.CLIPBOARD_ONLY
    assert outcome.attempts == (InjectionMethod.STANDARD_PASTE, InjectionMethod.CLIPBOARD_ONLY)
    assert not any(call[0] == "xdotool" for call in runner.calls)
    assert copied == ["hello"]


def test_xsel_is_used_when_xclip_fails() -> None:
    runner = FakeRunner(fails=lambda argv: argv[0] == "xclip")

    outcome = make_injector(runner, X11).inject("hello", EDITOR, VoiceTypeConfig())

    assert outcome.method_used == InjectionMethod.STANDARD_PASTE
    assert ["xsel", "--clipboard", "--input"] in runner.calls


def test_clipboard_only_succeeds_without_any_clipboard() -> None:
    runner = FakeRunner(fails=lambda argv: True)

    outcome = make_injector(runner, X11).inject("hello", EDITOR, VoiceTypeConfig())

    assert outcome.method_used == InjectionMethod.CLIPBOARD_ONLY
    assert outcome.succeeded is True
    assert outcome.clipboard_only is True


def test_empty_text_runs_no_tools() -> None:
    runner = FakeRunner()
    outcome = make_injector(runner, X11).inject("", TERMINAL, VoiceTypeConfig())

    assert outcome.method_used == InjectionMethod.CLIPBOARD_ONLY
    assert outcome.succeeded is True
    assert runner.calls == []


def test_debug_mode_bypasses_the_chain() -> None:
    runner = FakeRunner()
    logged = []

    outcome = make_injector(runner, X11, debug_sink=logged.append).inject(
        "hello", TERMINAL, VoiceTypeConfig(debug_mode=True)
    )

    assert outcome.method_used == InjectionMethod.DEBUG_LOG
    assert logged == ["hello"]
    assert runner.calls == []


def test_terminal_support_disabled_uses_standard_chain() -> None:
    runner = FakeRunner()
    config = VoiceTypeConfig(enhanced_terminal_support=False)

    outcome = make_injector(runner, X11).inject("ls", TERMINAL, config)

    assert outcome.method_used == InjectionMethod.STANDARD_PASTE


def test_unknown_window_is_not_a_terminal() -> None:
    runner = FakeRunner()
    outcome = make_injector(runner, X11).inject("ls", None, VoiceTypeConfig())

    assert outcome.method_used == InjectionMethod.STANDARD_PASTE


@pytest.mark.parametrize(
    "length, expect_direct",
    [(0, True), (199, True), (200, False), (5000, False)],
)
def test_direct_type_threshold(length: int, expect_direct: bool) -> None:
    chain = TextInjector.strategy_chain("x" * length, True, 200)

    assert (InjectionMethod.DIRECT_TYPE in chain) is expect_direct
    assert chain[-1] == InjectionMethod.CLIPBOARD_ONLY


def test_non_terminal_chain() -> None:
    assert TextInjector.strategy_chain("hi", False, 200) == [
        InjectionMethod.STANDARD_PASTE,
        InjectionMethod.CLIPBOARD_ONLY,
    ]
