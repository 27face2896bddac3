"""
Player controller for nightride.

Drives a PlayerBackend and keeps the PlaybackState that the rest of the
program reads. State is never inferred from the player: it changes only when
a command sent here has been acknowledged.
"""
import time
from dataclasses import replace
from typing import Any, Callable, Optional

from nightride.logging_config import get_logger, ChannelUnavailable, PlayerCommandError
from nightride.player import PlayerBackend
from nightride.stations import Station
from nightride.state import DEFAULT_VOLUME, PlaybackState, PlayerStatus, clamp_volume

logger = get_logger('controller')


class PlayerController:
    """Safe command surface over the external player.

    States: STOPPED -> LOADING -> PLAYING <-> PAUSED -> STOPPED
    """

    def __init__(
        self,
        backend: PlayerBackend,
        station: Station,
        volume: int = DEFAULT_VOLUME,
        reconnect_attempts: int = 3,
        reconnect_backoff: float = 0.2,
        on_station_change: Optional[Callable[[Station], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.backend = backend
        self.reconnect_attempts = max(1, reconnect_attempts)
        self.reconnect_backoff = reconnect_backoff
        self.on_station_change = on_station_change
        self._sleep = sleep
        self._station = station
        self._state = PlaybackState(station_id=station.id, volume=clamp_volume(volume))

    def __enter__(self) -> "PlayerController":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    @property
    def station(self) -> Station:
        return self._station

    def get_state(self) -> PlaybackState:
        return replace(self._state)

    def get_volume(self) -> int:
        return self._state.volume

    def start(self, station: Station) -> PlaybackState:
        """Play ``station``, spawning the player if needed.

        An already running player switches streams in place.

        Raises:
            ProcessSpawnFailed: if the player cannot be launched
            ChannelUnavailable: if the control channel stays unreachable
            PlayerCommandError: if the player rejects the stream
        """
        self._station = station
        self._state.station_id = station.id
        if self.on_station_change:
            self.on_station_change(station)

        if not self.backend.is_active():
            logger.info(f"Spawning player for {station.name}")
            self.backend.spawn()
            self._call(self.backend.set_volume, self._state.volume)

        self._state.status = PlayerStatus.LOADING
        try:
            self._call(self.backend.load, station.stream_url)
            self._call(self.backend.play)
        except PlayerCommandError:
            self._state.status = PlayerStatus.STOPPED
            raise
        self._state.status = PlayerStatus.PLAYING
        logger.info(f"Playing {station.name} at volume {self._state.volume}")
        return self.get_state()

    def toggle_play_pause(self) -> PlaybackState:
        """Pause when playing, resume when paused.

        Does nothing in any other state.
        """
        if self._state.status is PlayerStatus.PLAYING:
            self._call(self.backend.pause)
            self._state.status = PlayerStatus.PAUSED
            logger.debug("Paused")
        elif self._state.status is PlayerStatus.PAUSED:
            self._call(self.backend.play)
            self._state.status = PlayerStatus.PLAYING
            logger.debug("Resumed")
        else:
            logger.debug(f"Ignoring play/pause while {self._state.status.value}")
        return self.get_state()

    def set_volume(self, delta: int) -> int:
        """Adjust volume by ``delta`` and return the new volume.

        Saturated changes are a no-op. While stopped only the stored value
        changes; it is applied when the player is spawned.
        """
        new_volume = clamp_volume(self._state.volume + delta)
        if new_volume == self._state.volume:
            return new_volume

        if self._state.status is not PlayerStatus.STOPPED:
            self._call(self.backend.set_volume, new_volume)
        self._state.volume = new_volume
        return new_volume

    def shutdown(self) -> None:
        """Stop playback and release the player. Safe to call twice."""
        try:
            if self.backend.is_active():
                try:
                    self.backend.stop()
                except (ChannelUnavailable, PlayerCommandError) as e:
                    logger.warning(f"Could not send stop to player: {e}")
        finally:
            self.backend.close()
            self._state.status = PlayerStatus.STOPPED
            logger.info("Player shut down")

    def _call(self, command: Callable[..., Any], *args: Any) -> Any:
        """Run a backend command, reconnecting with bounded backoff.

        Raises:
            ChannelUnavailable: once every attempt has failed
        """
        for attempt in range(1, self.reconnect_attempts + 1):
            try:
                return command(*args)
            except ChannelUnavailable as e:
                if attempt == self.reconnect_attempts:
                    logger.error(f"Control channel unavailable after {attempt} attempts: {e}")
                    self._state.status = PlayerStatus.STOPPED
                    raise
                delay = self.reconnect_backoff * (2 ** (attempt - 1))
                logger.warning(f"Control channel error ({e}), retrying in {delay:.2f}s")
                self._sleep(delay)
