"""
Desktop session probing and external tool invocation for VoiceType.

The display server decides which tool family can inject input: xdotool and
xclip on X11, ydotool and wl-clipboard on Wayland. It can only be known at
run time, so it is probed once per injection.
"""

import logging
import os
import shutil
import subprocess
from enum import Enum
from typing import Mapping, Optional, Sequence

logger = logging.getLogger(__name__)


class SessionKind(Enum):
    """Display-server protocol family of the running session."""

    X11 = "x11"
    WAYLAND = "wayland"


def detect_session_kind(environ: Optional[Mapping[str, str]] = None) -> SessionKind:
    """
    Detect whether the current session uses Wayland or X11.

    Checks XDG_SESSION_TYPE first, then WAYLAND_DISPLAY. Defaults to X11
    when detection fails.

    Args:
        environ: Environment to inspect. Defaults to os.environ.
    """
    env = os.environ if environ is None else environ

    session_type = env.get("XDG_SESSION_TYPE", "").lower()
    if session_type == "wayland":
        return SessionKind.WAYLAND
    if session_type == "x11":
        return SessionKind.X11

    if env.get("WAYLAND_DISPLAY"):
        return SessionKind.WAYLAND

    return SessionKind.X11


class ToolRunner:
    """
    Runs external tools as argument vectors, never through a shell.

    A call succeeds only when the tool exists and exits with status zero.
    Missing tools, non-zero exits and timeouts are reported as failure and
    logged at debug level since they are an expected part of the fallback
    chain.
    """

    def __init__(self, timeout: float = 5.0) -> None:
        self.timeout = timeout

    def available(self, tool: str) -> bool:
        """Return True if ``tool`` is on PATH."""
        return shutil.which(tool) is not None

    def run(
        self,
        argv: Sequence[str],
        input_text: Optional[str] = None,
        timeout: Optional[float] = None,
        detach: bool = False,
    ) -> bool:
        """
        Run a tool and report whether it succeeded.

        Args:
            argv: Command and arguments.
            input_text: Optional text written to the tool's stdin.
            timeout: Overrides the default timeout in seconds.
            detach: Do not capture stderr. Required for clipboard owners
                (wl-copy, xclip) that fork a background process which would
                otherwise keep the pipe open until the timeout.

        Returns:
            True on zero exit status, False otherwise.
        """
        cmd = list(argv)
        try:
            result = subprocess.run(
                cmd,
                input=input_text.encode("utf-8") if input_text is not None else None,
                stdin=subprocess.DEVNULL if input_text is None else None,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL if detach else subprocess.PIPE,
                timeout=timeout if timeout is not None else self.timeout,
                check=False,
            )
        except FileNotFoundError:
            logger.debug(f"Tool not found: {cmd[0]}")
            return False
        except subprocess.TimeoutExpired:
            logger.debug(f"Tool timed out: {cmd[0]}")
            return False
        except OSError as e:
            logger.debug(f"Tool {cmd[0]} could not be run: {e}")
            return False

        if result.returncode != 0:
            error_msg = (result.stderr or b"").decode("utf-8", errors="replace").strip()
            logger.debug(f"{cmd[0]} exited with {result.returncode}: {error_msg or 'no output'}")
            return False
        return True

    def output(self, argv: Sequence[str], timeout: Optional[float] = None) -> Optional[str]:
        """
        Run a tool and return its stdout, or None on any failure.
        """
        cmd = list(argv)
        try:
            result = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=timeout if timeout is not None else self.timeout,
                check=False,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired, OSError) as e:
            logger.debug(f"Query with {cmd[0]} failed: {e}")
            return None

        if result.returncode != 0:
            logger.debug(f"{cmd[0]} exited with {result.returncode}")
            return None
        return result.stdout
