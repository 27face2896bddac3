"""
Session persistence for nightride.

Remembers the last station and volume between runs. The file is a small
JSON object::

    {"last_station_id": "chillsynth", "last_volume": 45}

Writes go to a temporary file in the same directory which is then renamed
over the old one, so an interrupted save leaves the previous snapshot intact.
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from nightride.config import get_data_dir
from nightride.logging_config import get_logger, PersistenceUnavailable
from nightride.stations import StationRegistry
from nightride.state import DEFAULT_VOLUME, VOLUME_MAX, VOLUME_MIN, SessionState

logger = get_logger('session')


def get_session_file() -> Path:
    """Get the path to the session file."""
    return get_data_dir() / "app.json"


class SessionStore:
    """Loads and saves the {last station, last volume} record."""

    def __init__(self, registry: StationRegistry, path: Optional[Path] = None):
        self.registry = registry
        self.path = Path(path) if path is not None else get_session_file()

    def defaults(self) -> SessionState:
        return SessionState(last_station_id=self.registry.first().id, last_volume=DEFAULT_VOLUME)

    def load(self) -> SessionState:
        """Load the saved session.

        Returns:
            The stored session, or the defaults when the file is missing,
            unreadable or fails validation
        """
        if not self.path.exists():
            logger.info(f"No saved session at {self.path}, using defaults")
            return self.defaults()

        try:
            session = self._read()
        except PersistenceUnavailable as e:
            logger.warning(f"Failed to load session: {e}")
            return self.defaults()

        logger.debug(f"Session loaded from {self.path}: {session}")
        return session

    def save(self, session: SessionState) -> bool:
        """Save the session to disk.

        Returns:
            True if the session was written, False otherwise
        """
        try:
            self._write(session)
        except PersistenceUnavailable as e:
            logger.warning(f"Failed to save session: {e}")
            return False

        logger.debug(f"Session saved to {self.path}")
        return True

    def _read(self) -> SessionState:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceUnavailable(f"cannot read {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise PersistenceUnavailable(f"corrupt session file {self.path}: {e}") from e

        return self._validate(data)

    def _validate(self, data: Any) -> SessionState:
        if not isinstance(data, dict):
            raise PersistenceUnavailable(f"session record is not an object: {data!r}")

        station_id = data.get("last_station_id")
        if not isinstance(station_id, str) or station_id not in self.registry:
            raise PersistenceUnavailable(f"unknown station in session: {station_id!r}")

        volume = data.get("last_volume")
        if isinstance(volume, bool) or not isinstance(volume, int):
            raise PersistenceUnavailable(f"invalid volume in session: {volume!r}")
        if not VOLUME_MIN <= volume <= VOLUME_MAX:
            raise PersistenceUnavailable(f"volume out of range in session: {volume}")

        return SessionState(last_station_id=station_id, last_volume=volume)

    def _write(self, session: SessionState) -> None:
        record: Dict[str, Any] = {
            "last_station_id": session.last_station_id,
            "last_volume": session.last_volume,
        }

        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                json.dump(record, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise PersistenceUnavailable(f"cannot write {self.path}: {e}") from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.debug(f"Could not remove temporary session file {tmp_name}")
