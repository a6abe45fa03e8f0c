"""
Text delivery for VoiceType.

Puts transcribed text into the focused application. Which gesture works
depends on the display server and on whether the focused window is a
terminal, so delivery is an ordered chain of strategies: the first one
that succeeds wins, and the last one (clipboard only) cannot fail.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Mapping, Optional, Tuple

from ..config import VoiceTypeConfig
from ..exceptions import InjectionStrategyFailure
from .session import SessionKind, ToolRunner, detect_session_kind
from .window import WindowContext, classify

logger = logging.getLogger(__name__)

# Delay between keystrokes when typing, in milliseconds
TYPE_DELAY_MS = 8

# Time for the clipboard owner to settle before a paste gesture
PASTE_SETTLE_SECONDS = 0.05

# Linux input event codes for ydotool key sequences
_KEY_LEFTCTRL = 29
_KEY_LEFTSHIFT = 42
_KEY_V = 47
_KEY_INSERT = 110


def _key_sequence(*codes: int) -> List[str]:
    """Press the codes in order, then release them in reverse."""
    return [f"{c}:1" for c in codes] + [f"{c}:0" for c in reversed(codes)]


class InjectionMethod(Enum):
    """Ways of delivering text into the focused application."""

    DIRECT_TYPE = "direct_type"
    TERMINAL_PASTE_COMBO = "terminal_paste_combo"
    MIDDLE_CLICK = "middle_click"
    STANDARD_PASTE = "standard_paste"
    CLIPBOARD_ONLY = "clipboard_only"
    DEBUG_LOG = "debug_log"


@dataclass(frozen=True)
class InjectionOutcome:
    """
    Result of one inject() call.

    Attributes:
        method_used: The strategy that delivered the text.
        succeeded: False only if nothing delivered the text.
        attempts: Every strategy tried, in order, including the winner.
    """

    method_used: InjectionMethod
    succeeded: bool
    attempts: Tuple[InjectionMethod, ...] = ()

    @property
    def clipboard_only(self) -> bool:
        """True when the text was left on the clipboard for manual paste."""
        return self.method_used == InjectionMethod.CLIPBOARD_ONLY


class TextInjector:
    """
    Delivers text using the most reliable method the session offers.

    Terminal-aware chain, used when enhanced terminal support is on and
    the focused window is a terminal:
        direct typing (short text only), Ctrl+Shift+V, middle click
        (Shift+Insert on Wayland), Ctrl+V, clipboard only.

    Otherwise:
        Ctrl+V, clipboard only.

    Attributes:
        runner: Runs the external tools.
        clipboard_sink: Called with the text when no clipboard tool works,
            usually the Qt clipboard.
        debug_sink: Receives the text instead of the chain in debug mode.
        settle_delay: Seconds to wait between setting the clipboard and
            sending a paste gesture.

    Example:
        >>> injector = TextInjector()
        >>> outcome = injector.inject("hello world", WindowContext("gedit", ""), config)
        >>> outcome.method_used
        <InjectionMethod.STANDARD_PASTE: 'standard_paste'>
    """

    def __init__(
        self,
        runner: Optional[ToolRunner] = None,
        clipboard_sink: Optional[Callable[[str], None]] = None,
        debug_sink: Optional[Callable[[str], None]] = None,
        environ: Optional[Mapping[str, str]] = None,
        settle_delay: float = PASTE_SETTLE_SECONDS,
    ) -> None:
        self.runner = runner or ToolRunner()
        self.clipboard_sink = clipboard_sink
        self.debug_sink = debug_sink
        self.settle_delay = settle_delay
        self._environ = environ

    def inject(
        self,
        text: str,
        window_context: Optional[WindowContext],
        config: VoiceTypeConfig,
    ) -> InjectionOutcome:
        """
        Deliver ``text`` into the focused application.

        Args:
            text: Text to deliver.
            window_context: Snapshot of the focused window, taken just before
                this call. None is treated as an unknown window.
            config: Current settings (terminal support, debug mode,
                type threshold and tool timeout).

        Returns:
            An InjectionOutcome. Never raises.
        """
        if not text:
            logger.debug("Empty text, nothing to inject")
            return InjectionOutcome(InjectionMethod.CLIPBOARD_ONLY, True)

        if config.debug_mode:
            self._send_to_debug_sink(text)
            return InjectionOutcome(
                InjectionMethod.DEBUG_LOG, True, (InjectionMethod.DEBUG_LOG,)
            )

        context = window_context or WindowContext()
        session_kind = detect_session_kind(self._environ)
        is_terminal = config.enhanced_terminal_support and classify(
            context.wm_class, context.title
        )
        chain = self.strategy_chain(text, is_terminal, config.type_chunk_threshold)

        logger.info(
            f"Injecting {len(text)} chars (session={session_kind.value}, "
            f"terminal={is_terminal}, chain={[m.name for m in chain]})"
        )

        attempts: List[InjectionMethod] = []
        for method in chain:
            attempts.append(method)
            try:
                self._run_strategy(method, text, session_kind, config)
            except InjectionStrategyFailure as e:
                logger.debug(f"{method.name} failed: {e}")
                continue
            except Exception as e:
                logger.warning(f"{method.name} raised unexpectedly: {e}")
                continue

            logger.info(f"Text delivered via {method.name}")
            return InjectionOutcome(method, True, tuple(attempts))

        # Unreachable while CLIPBOARD_ONLY closes the chain
        logger.error("Every injection strategy failed")
        return InjectionOutcome(InjectionMethod.CLIPBOARD_ONLY, False, tuple(attempts))

    @staticmethod
    def strategy_chain(
        text: str,
        is_terminal: bool,
        type_chunk_threshold: int,
    ) -> List[InjectionMethod]:
        """
        Return the ordered strategies to try for this text and window.

        Direct typing is only offered for text shorter than
        ``type_chunk_threshold``; longer text is pasted.
        """
        if not is_terminal:
            return [InjectionMethod.STANDARD_PASTE, InjectionMethod.CLIPBOARD_ONLY]

        chain = []
        if len(text) < type_chunk_threshold:
            chain.append(InjectionMethod.DIRECT_TYPE)
        chain.extend([
            InjectionMethod.TERMINAL_PASTE_COMBO,
            InjectionMethod.MIDDLE_CLICK,
            InjectionMethod.STANDARD_PASTE,
            InjectionMethod.CLIPBOARD_ONLY,
        ])
        return chain

    def _run_strategy(
        self,
        method: InjectionMethod,
        text: str,
        session_kind: SessionKind,
        config: VoiceTypeConfig,
    ) -> None:
        timeout = config.tool_timeout_seconds
        wayland = session_kind == SessionKind.WAYLAND

        if method == InjectionMethod.DIRECT_TYPE:
            self._type_text(text, wayland, timeout)
        elif method == InjectionMethod.TERMINAL_PASTE_COMBO:
            self._set_selections(text, wayland, timeout)
            if wayland:
                argv = ["ydotool", "key"] + _key_sequence(_KEY_LEFTCTRL, _KEY_LEFTSHIFT, _KEY_V)
            else:
                argv = ["xdotool", "key", "--clearmodifiers", "ctrl+shift+v"]
            self._run_or_fail(argv, timeout)
        elif method == InjectionMethod.MIDDLE_CLICK:
            self._set_selections(text, wayland, timeout)
            if wayland:
                argv = ["ydotool", "key"] + _key_sequence(_KEY_LEFTSHIFT, _KEY_INSERT)
            else:
                argv = ["xdotool", "click", "2"]
            self._run_or_fail(argv, timeout)
        elif method == InjectionMethod.STANDARD_PASTE:
            self._set_selections(text, wayland, timeout)
            if wayland:
                argv = ["ydotool", "key"] + _key_sequence(_KEY_LEFTCTRL, _KEY_V)
            else:
                argv = ["xdotool", "key", "--clearmodifiers", "ctrl+v"]
            self._run_or_fail(argv, timeout)
        elif method == InjectionMethod.CLIPBOARD_ONLY:
            self._clipboard_only(text, wayland, timeout)
        else:
            raise InjectionStrategyFailure(f"{method.name} is not a chain strategy")

    def _run_or_fail(self, argv: List[str], timeout: float) -> None:
        if not self.runner.run(argv, timeout=timeout):
            raise InjectionStrategyFailure(f"{argv[0]} {argv[1]} failed")

    def _type_text(self, text: str, wayland: bool, timeout: float) -> None:
        if wayland:
            argv = ["ydotool", "type", "-d", str(TYPE_DELAY_MS), "--", text]
        else:
            argv = [
                "xdotool", "type", "--clearmodifiers",
                "--delay", str(TYPE_DELAY_MS), "--", text,
            ]
        # Typing time grows with the text
        type_timeout = max(timeout, len(text) * TYPE_DELAY_MS * 4 / 1000.0)
        self._run_or_fail(argv, type_timeout)

    def _set_clipboard(self, text: str, wayland: bool, timeout: float) -> bool:
        if wayland:
            candidates = [["wl-copy"]]
        else:
            candidates = [
                ["xclip", "-selection", "clipboard"],
                ["xsel", "--clipboard", "--input"],
            ]
        return any(
            self.runner.run(argv, input_text=text, timeout=timeout, detach=True)
            for argv in candidates
        )

    def _set_primary(self, text: str, wayland: bool, timeout: float) -> bool:
        if wayland:
            candidates = [["wl-copy", "--primary"]]
        else:
            candidates = [
                ["xclip", "-selection", "primary"],
                ["xsel", "--primary", "--input"],
            ]
        return any(
            self.runner.run(argv, input_text=text, timeout=timeout, detach=True)
            for argv in candidates
        )

    def _set_selections(self, text: str, wayland: bool, timeout: float) -> None:
        """
        Place text on the clipboard and the primary selection.

        Raises:
            InjectionStrategyFailure: If the clipboard could not be set.
        """
        if not self._set_clipboard(text, wayland, timeout):
            raise InjectionStrategyFailure("could not set clipboard")
        if not self._set_primary(text, wayland, timeout):
            logger.debug("Could not set primary selection")
        if self.settle_delay > 0:
            time.sleep(self.settle_delay)

    def _clipboard_only(self, text: str, wayland: bool, timeout: float) -> None:
        clipboard_set = self._set_clipboard(text, wayland, timeout)
        self._set_primary(text, wayland, timeout)

        if not clipboard_set and self.clipboard_sink is not None:
            try:
                self.clipboard_sink(text)
                clipboard_set = True
            except Exception as e:
                logger.warning(f"Fallback clipboard failed: {e}")

        if not clipboard_set:
            # The caller still receives the text through its own channel
            logger.warning("No clipboard available, text only reported to the caller")

    def _send_to_debug_sink(self, text: str) -> None:
        logger.info(f"Debug mode, transcription: {text!r}")
        if self.debug_sink is None:
            return
        try:
            self.debug_sink(text)
        except Exception as e:
            logger.warning(f"Debug sink failed: {e}")
