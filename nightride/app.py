"""
Main loop and entry point for nightride.
"""
import signal
import sys
import termios
import tty
from typing import Any, Callable, List, Optional, TextIO

from nightride import __description__, __version__
from nightride import ui
from nightride.config import ConfigManager, load_config
from nightride.controller import PlayerController
from nightride.keys import Action, InputDispatcher
from nightride.logging_config import (
    get_logger,
    setup_logging,
    ChannelUnavailable,
    ConfigurationError,
    PlayerCommandError,
    ProcessSpawnFailed,
)
from nightride.metadata import MetadataPoller
from nightride.player import MpvPlayer
from nightride.session import SessionStore
from nightride.stations import Station, StationRegistry
from nightride.state import PlaybackState, SessionState, TrackMetadata

logger = get_logger('app')

DrawFn = Callable[[Station, PlaybackState, TrackMetadata], None]


class RadioApp:
    """Cooperative main loop tying the components together.

    Each tick polls for a key, harvests metadata, saves the session when
    station or volume changed and redraws when the visible state changed.
    """

    def __init__(
        self,
        registry: StationRegistry,
        session_store: SessionStore,
        controller: PlayerController,
        poller: MetadataPoller,
        dispatcher: InputDispatcher,
        draw: Optional[DrawFn] = None,
    ):
        self.registry = registry
        self.session_store = session_store
        self.controller = controller
        self.poller = poller
        self.dispatcher = dispatcher
        self.draw = draw or ui.draw
        self.running = False
        self.needs_redraw = True
        self._last_saved: Optional[SessionState] = None
        self._last_view: Optional[tuple] = None

    def run(self) -> None:
        """Start the saved station and loop until quit.

        Raises:
            ProcessSpawnFailed: if the player cannot be launched
            ChannelUnavailable: if the control channel is lost for good
        """
        self.running = True
        try:
            try:
                self.controller.start(self.controller.station)
            except PlayerCommandError as e:
                logger.error(f"Player rejected {self.controller.station.id}: {e}")
            self._last_saved = self._snapshot()
            while self.running:
                self.tick()
        finally:
            self.close()

    def tick(self) -> None:
        action = self.dispatcher.dispatch(self.dispatcher.poll())
        if action is Action.QUIT:
            self.running = False
            return

        self.poller.poll()
        self._sync_session()
        self._render()

    def stop(self) -> None:
        self.running = False

    def close(self) -> None:
        """Save the session and release everything."""
        self.running = False
        try:
            self.session_store.save(self._snapshot())
        finally:
            try:
                self.poller.shutdown()
            finally:
                self.controller.shutdown()

    def _snapshot(self) -> SessionState:
        state = self.controller.get_state()
        return SessionState(last_station_id=state.station_id, last_volume=state.volume)

    def _sync_session(self) -> None:
        snapshot = self._snapshot()
        if snapshot != self._last_saved:
            # A failed save is logged by the store; retry on the next change
            self.session_store.save(snapshot)
            self._last_saved = snapshot

    def _render(self) -> None:
        playback = self.controller.get_state()
        track = self.poller.metadata
        view = (playback.station_id, playback.status, playback.volume,
                track.artist, track.title, track.album)
        if view == self._last_view and not self.needs_redraw:
            return
        self.draw(self.controller.station, playback, track)
        self._last_view = view
        self.needs_redraw = False


def build_app(manager: ConfigManager, stream: Optional[TextIO] = None) -> RadioApp:
    """Wire the components from configuration."""
    manager.validate_config()
    config = manager.config
    registry = manager.build_registry()
    session_store = SessionStore(registry)
    session = session_store.load()
    station = registry.get(session.last_station_id) or registry.first()

    on_track_change = None
    if config.notifications_enabled:
        def on_track_change(track: TrackMetadata) -> None:
            ui.send_notification("Now Playing", str(track), config.notification_glyph)

    poller = MetadataPoller(
        interval=config.poll_interval,
        timeout=config.request_timeout,
        on_track_change=on_track_change,
    )
    backend = MpvPlayer(
        executable=config.player_executable,
        socket_path=config.socket_path,
        timeout=config.command_timeout,
        spawn_timeout=config.spawn_timeout,
    )
    controller = PlayerController(
        backend,
        station,
        volume=session.last_volume,
        reconnect_attempts=config.reconnect_attempts,
        reconnect_backoff=config.reconnect_backoff,
        on_station_change=poller.switch_station,
    )
    dispatcher = InputDispatcher(
        controller,
        registry,
        track_source=lambda: poller.metadata,
        volume_step=config.volume_step,
        search_url=config.search_url,
        stream=stream,
        timeout=config.input_timeout,
    )
    return RadioApp(registry, session_store, controller, poller, dispatcher)


def _print_help() -> None:
    print(f"nightride {__version__}")
    print("")
    print("Usage:")
    print("  nightride            # Run the player")
    print("  nightride --version  # Show version info")
    print("  nightride --help     # Show this help")
    print("")
    print(f"Keys: {ui.HELP_LINE}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the radio player."""
    argv = sys.argv[1:] if argv is None else argv
    if "--version" in argv or "-v" in argv:
        print(f"nightride {__version__}")
        print(__description__)
        return 0
    if "--help" in argv or "-h" in argv:
        _print_help()
        return 0

    if not sys.stdin.isatty():
        print("Error: Must run in interactive terminal", file=sys.stderr)
        return 1

    manager = load_config()
    config = manager.config
    manager.validate_config()
    setup_logging(config.log_level, manager.get_log_file_path(), console=False)
    logger.info(f"nightride {__version__} starting")

    try:
        app = build_app(manager)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    def _handle_exit(signum: Optional[int] = None, frame: Any = None) -> None:
        app.stop()

    def _handle_resize(signum: Optional[int] = None, frame: Any = None) -> None:
        app.needs_redraw = True

    signal.signal(signal.SIGTERM, _handle_exit)
    signal.signal(signal.SIGHUP, _handle_exit)
    signal.signal(signal.SIGWINCH, _handle_resize)

    fd = sys.stdin.fileno()
    old = termios.tcgetattr(fd)
    tty.setcbreak(fd)
    print(ui.HIDE_CURSOR, end="", flush=True)

    error: Optional[Exception] = None
    try:
        app.run()
    except (ChannelUnavailable, ProcessSpawnFailed) as e:
        logger.critical(f"Fatal player error: {e}")
        error = e
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        print(ui.SHOW_CURSOR, end="")
        termios.tcsetattr(fd, termios.TCSADRAIN, old)
        print(ui.CLEAR_SCREEN, end="")

    if error is not None:
        print(f"Error: {error}", file=sys.stderr)
        return 1
    print("\n  Bye!")
    return 0
