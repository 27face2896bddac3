import pytest
import requests

from conftest import FakeClock, FakeResponse, FakeSession, ImmediateExecutor, PendingExecutor, make_station
from nightride.logging_config import MetadataFetchFailed
from nightride.metadata import MetadataPoller, fetch_track, parse_track
from nightride.state import UNKNOWN_TRACK, TrackMetadata


class TestParseTrack:
    """Tests for decoding the now-playing body."""

    def test_full_payload(self):
        """Test all fields are carried over."""
        track = parse_track({"artist": "Gunship", "title": "Tech Noir", "album": "Gunship"}, 12.0)

        assert track == TrackMetadata("Gunship", "Tech Noir", "Gunship", 12.0)

    def test_missing_fields_are_unknown(self):
        """Test a body without artist or title is the unknown track."""
        assert parse_track({}, 12.0) is UNKNOWN_TRACK
        assert parse_track({"artist": "  ", "title": None}, 12.0) is UNKNOWN_TRACK

    def test_title_only(self):
        """Test a single field is enough to know the track."""
        track = parse_track({"title": "Turbo Killer"}, 12.0)

        assert track.title == "Turbo Killer"
        assert track.artist is None
        assert track.is_unknown is False


class TestFetchTrack:
    """Tests for the HTTP fetch."""

    def test_success(self):
        """Test a good response is parsed."""
        session = FakeSession([FakeResponse({"artist": "Carpenter Brut", "title": "Turbo Killer"})])

        track = fetch_track(session, "http://meta.example/darksynth", 5.0, clock=lambda: 7.0)

        assert track.artist == "Carpenter Brut"
        assert track.retrieved_at == 7.0
        assert session.requested == ["http://meta.example/darksynth"]

    @pytest.mark.parametrize("response", [
        FakeResponse(text="<html>oops</html>"),
        FakeResponse(status_code=503),
        FakeResponse(["not", "an", "object"]),
        requests.ConnectionError("Name or service not known"),
        requests.Timeout("read timed out"),
    ])
    def test_failures(self, response):
        """Test network and format errors become MetadataFetchFailed."""
        session = FakeSession([response])

        with pytest.raises(MetadataFetchFailed):
            fetch_track(session, "http://meta.example/nightride", 5.0)


class TestMetadataPoller:
    """Tests for the background poller."""

    def setup_method(self):
        self.clock = FakeClock()
        self.wall = FakeClock(now=5000.0)
        self.session = FakeSession()
        self.executor = ImmediateExecutor()
        self.changes = []
        self.poller = MetadataPoller(
            interval=15.0, session=self.session, executor=self.executor,
            clock=self.clock, wall_clock=self.wall, on_track_change=self.changes.append,
        )
        self.nightride = make_station("nightride")
        self.chillsynth = make_station("chillsynth")

    def _tick(self, times=1):
        changed = False
        for _ in range(times):
            changed = self.poller.poll() or changed
        return changed

    def test_idle_without_station(self):
        """Test nothing is fetched before a station is set."""
        self._tick(3)

        assert self.executor.submitted == 0
        assert self.poller.metadata is UNKNOWN_TRACK

    def test_first_poll_fetches_immediately(self):
        """Test a new station is fetched on the next tick."""
        self.session.responses.append(FakeResponse({"artist": "Gunship", "title": "Tech Noir"}))
        self.poller.switch_station(self.nightride)

        assert self._tick(2) is True
        assert self.poller.metadata.title == "Tech Noir"
        assert self.poller.metadata.retrieved_at == 5000.0
        assert self.session.requested == ["http://meta.example/nightride"]

    def test_waits_for_interval(self):
        """Test no second request goes out before the interval."""
        self.session.responses.append(FakeResponse({"title": "A"}))
        self.poller.switch_station(self.nightride)
        self._tick(2)

        self.clock.advance(14.0)
        self._tick(3)
        assert self.executor.submitted == 1

        self.session.responses.append(FakeResponse({"title": "B"}))
        self.clock.advance(1.0)
        self._tick(2)
        assert self.executor.submitted == 2
        assert self.poller.metadata.title == "B"

    def test_malformed_json_keeps_previous(self):
        """Test a malformed body leaves the last track and its timestamp."""
        self.session.responses.append(FakeResponse({"artist": "Gunship", "title": "Tech Noir"}))
        self.poller.switch_station(self.nightride)
        self._tick(2)
        before = self.poller.metadata

        self.session.responses.append(FakeResponse(text="{broken"))
        self.clock.advance(15.0)
        self.wall.advance(15.0)

        assert self._tick(2) is False
        assert self.poller.metadata is before
        assert self.poller.metadata.retrieved_at == 5000.0

    def test_unexpected_error_keeps_previous(self):
        """Test a bug inside the fetch is logged and does not end the run."""
        self.session.responses.append(FakeResponse({"artist": "Gunship", "title": "Tech Noir"}))
        self.poller.switch_station(self.nightride)
        self._tick(2)
        before = self.poller.metadata

        self.session.responses.append(RuntimeError("decoder exploded"))
        self.clock.advance(15.0)

        assert self._tick(2) is False
        assert self.poller.metadata is before

    def test_network_error_retries_next_interval(self):
        """Test a failed request is retried one interval later."""
        self.session.responses.append(requests.ConnectionError("down"))
        self.poller.switch_station(self.nightride)
        self._tick(2)
        assert self.poller.metadata is UNKNOWN_TRACK

        self.session.responses.append(FakeResponse({"title": "Back"}))
        self.clock.advance(15.0)
        self._tick(2)
        assert self.poller.metadata.title == "Back"

    def test_switch_resets_to_unknown(self):
        """Test switching stations clears the track until the next poll."""
        self.session.responses.append(FakeResponse({"artist": "Gunship", "title": "Tech Noir"}))
        self.poller.switch_station(self.nightride)
        self._tick(2)

        self.poller.switch_station(self.chillsynth)
        assert self.poller.metadata is UNKNOWN_TRACK

        self.session.responses.append(FakeResponse({"artist": "FM-84", "title": "Running in the Night"}))
        self._tick(2)
        assert self.poller.metadata.artist == "FM-84"
        assert self.session.requested[-1] == "http://meta.example/chillsynth"

    def test_switch_discards_in_flight_fetch(self):
        """Test a result for the old station never lands."""
        executor = PendingExecutor()
        poller = MetadataPoller(session=self.session, executor=executor, clock=self.clock)
        poller.switch_station(self.nightride)
        poller.poll()
        stale = executor.futures[0]

        poller.switch_station(self.chillsynth)
        poller.poll()

        assert stale.cancelled()
        assert poller.metadata is UNKNOWN_TRACK
        assert len(executor.futures) == 2

        executor.futures[1].set_result(TrackMetadata("FM-84", "Running in the Night", retrieved_at=1.0))
        poller.poll()
        assert poller.metadata.artist == "FM-84"

    def test_track_change_callback(self):
        """Test the callback fires once per new track."""
        same = {"artist": "Gunship", "title": "Tech Noir"}
        self.session.responses.extend([FakeResponse(same), FakeResponse(same)])
        self.poller.switch_station(self.nightride)
        self._tick(2)
        self.clock.advance(15.0)
        self._tick(2)

        assert [t.title for t in self.changes] == ["Tech Noir"]

    def test_shutdown_closes_session(self):
        """Test shutdown releases the HTTP session."""
        self.poller.shutdown()

        assert self.session.closed is True
