#!/usr/bin/env python3
"""
Entry point for running VoiceType as a module.

This allows the application to be run with:
    python -m voicetype

The main() function is also the entry point of the ``voicetype`` console
script defined in pyproject.toml.
"""

import logging
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Reduce noise from external libraries
logging.getLogger("urllib3").setLevel(logging.WARNING)
logging.getLogger("PyQt6").setLevel(logging.WARNING)


def ensure_config_file(config, config_path) -> None:
    """Write ``config`` to ``config_path`` on first run so there is a file to edit."""
    from .config import save_config
    from .exceptions import ConfigurationError

    if config_path.exists():
        return
    try:
        save_config(config, config_path)
    except ConfigurationError as e:
        logger.warning(f"Could not write default configuration: {e}")


def reload_settings(controller, config_path, notify=None) -> bool:
    """
    Re-read the configuration file and hand it to the controller.

    Args:
        controller: RecordingController receiving the new settings.
        config_path: File to read.
        notify: Optional ``(title, message)`` callable for the result.

    Returns:
        bool: True if the file was loaded, False if it was invalid.
    """
    from .app import APP_NAME
    from .config import load_config
    from .exceptions import ConfigurationError

    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        logger.error(f"Settings not reloaded: {e}")
        if notify is not None:
            notify(APP_NAME, f"Settings not reloaded: {e}")
        return False

    controller.reload_config(config)
    logging.getLogger().setLevel(logging.DEBUG if config.debug_mode else logging.INFO)
    if notify is not None and config.enable_notifications:
        notify(APP_NAME, "Settings reloaded")
    return True


def main() -> int:
    """
    Application entry point.

    Loads the configuration, builds the controller and the tray icon,
    registers the global hotkey and runs the Qt event loop.

    Returns:
        int: Exit code (0 for success, non-zero for errors)
    """
    from . import __version__
    from .config import VoiceTypeConfig, get_config_path, load_config
    from .exceptions import ConfigurationError, HotkeyError

    config_path = get_config_path()
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        logger.error(f"{e}; using default settings")
        config = VoiceTypeConfig()
    else:
        ensure_config_file(config, config_path)

    if config.debug_mode:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        from PyQt6.QtWidgets import QApplication, QSystemTrayIcon

        from .app import APP_NAME, RecordingController
        from .gui import DebugLogWindow, QtClipboardSink, SystemTray
        from .hotkey import HotkeyManager
        from .input import TextInjector, ToolRunner

        qt_app = QApplication(sys.argv)
        qt_app.setApplicationName(APP_NAME)
        qt_app.setApplicationVersion(__version__)
        qt_app.setQuitOnLastWindowClosed(False)

        if not QSystemTrayIcon.isSystemTrayAvailable():
            logger.warning("No system tray available; use the hotkey to record")

        debug_window = DebugLogWindow()
        clipboard_sink = QtClipboardSink()

        injector = TextInjector(
            runner=ToolRunner(timeout=config.tool_timeout_seconds),
            clipboard_sink=clipboard_sink,
            debug_sink=debug_window.post_entry,
        )
        controller = RecordingController(config, injector=injector)

        tray = SystemTray()
        tray.attach(controller)
        tray.show_debug_log_requested.connect(debug_window.show_and_raise)
        tray.quit_requested.connect(qt_app.quit)
        tray.reload_settings_requested.connect(
            lambda: reload_settings(controller, config_path, tray.show_notification)
        )

        # In debug mode the injector already writes to the window
        def log_transcript(text: str) -> None:
            if not controller.config.debug_mode:
                debug_window.append_entry(text)

        tray.transcription_received.connect(log_transcript)
        tray.show()

        if config.debug_mode:
            debug_window.show_and_raise()

        hotkey_manager = None
        if config.hotkey:
            try:
                hotkey_manager = HotkeyManager(config.hotkey)
                hotkey_manager.on_toggle = controller.toggle
                hotkey_manager.start()
            except HotkeyError as e:
                logger.warning(f"Global hotkey unavailable: {e}")
                hotkey_manager = None
                if config.enable_notifications:
                    tray.show_notification(APP_NAME, f"Global hotkey unavailable: {e}")

        logger.info(f"{APP_NAME} v{__version__} started (config: {config_path})")

        exit_code = qt_app.exec()

        if hotkey_manager is not None:
            hotkey_manager.stop()
        controller.shutdown()
        tray.hide()

        return exit_code

    except ImportError as e:
        logger.error(f"Missing dependency: {e}")
        logger.error("Please install dependencies: pip install voicetype")
        return 1
    except Exception as e:
        logger.exception(f"Failed to start application: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
