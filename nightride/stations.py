"""
Station catalog for nightride.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional

from nightride.logging_config import ConfigurationError, get_logger

logger = get_logger('stations')

STATION_BASE_URL: str = "http://stream.nightride.fm/"
METADATA_BASE_URL: str = "https://nightride.fm/api/now-playing/"

DEFAULT_STATION_IDS: List[str] = [
    "nightride",
    "chillsynth",
    "datawave",
    "spacesynth",
    "darksynth",
    "horrorsynth",
    "ebsm",
]


@dataclass(frozen=True)
class Station:
    """A named radio stream."""
    id: str
    name: str
    stream_url: str
    metadata_url: str


def default_stations() -> List[Station]:
    """Build the stock Nightride FM station list."""
    return [
        Station(
            id=station_id,
            name=station_id.capitalize() if station_id != "ebsm" else "EBSM",
            stream_url=f"{STATION_BASE_URL}{station_id}.ogg",
            metadata_url=f"{METADATA_BASE_URL}{station_id}",
        )
        for station_id in DEFAULT_STATION_IDS
    ]


def station_from_dict(data: Dict[str, Any]) -> Station:
    """Build a station from a ``[[stations]]`` config table.

    Raises:
        ConfigurationError: if a required field is missing or not a string
    """
    fields = {}
    for key in ("id", "stream_url", "metadata_url"):
        value = data.get(key)
        if not isinstance(value, str) or not value:
            raise ConfigurationError(f"Station entry is missing '{key}': {data}")
        fields[key] = value
    name = data.get("name") or fields["id"]
    return Station(name=str(name), **fields)


class StationRegistry:
    """Ordered, immutable set of stations."""

    def __init__(self, stations: Optional[Iterable[Station]] = None):
        self._stations: List[Station] = list(stations) if stations is not None else default_stations()
        if not self._stations:
            raise ConfigurationError("At least one station must be configured")
        self._index: Dict[str, int] = {}
        for position, station in enumerate(self._stations):
            if station.id in self._index:
                raise ConfigurationError(f"Duplicate station id: {station.id}")
            self._index[station.id] = position

    def __len__(self) -> int:
        return len(self._stations)

    def __iter__(self) -> Iterator[Station]:
        return iter(self._stations)

    def __contains__(self, station_id: object) -> bool:
        return station_id in self._index

    def first(self) -> Station:
        return self._stations[0]

    def get(self, station_id: str) -> Optional[Station]:
        position = self._index.get(station_id)
        return self._stations[position] if position is not None else None

    def next(self, current_id: str) -> Station:
        """Return the station after ``current_id``, wrapping to the first.

        An unknown id yields the first station.
        """
        position = self._index.get(current_id)
        if position is None:
            logger.warning(f"Unknown station id: {current_id}")
            return self.first()
        return self._stations[(position + 1) % len(self._stations)]
