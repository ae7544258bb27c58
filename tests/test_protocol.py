"""
Bolo Agent - Protocol Tests

Line parsing and wire frame encoding.
"""

import pytest

from bolo_agent.protocol import EventKind, MetricEvent, parse_line, parse_lines


class TestParseSample:
    """Test SAMPLE and RATE lines."""

    def test_sample_line(self):
        """Test a plain SAMPLE line."""
        event = parse_line("SAMPLE 100 a:b:c 42\n")

        assert event == MetricEvent(EventKind.SAMPLE, "100", "a:b:c", "42")
        assert event.frames() == [b"", b"SAMPLE\0", b"100\0", b"a:b:c\0", b"42\0"]

    def test_rate_line(self):
        """Test a RATE line from a network collector."""
        event = parse_line("RATE 1700000000 host:net:eth0:rx.bytes 204800\n")

        assert event.kind == EventKind.RATE
        assert event.name == "host:net:eth0:rx.bytes"
        assert event.value == "204800"

    def test_tokens_are_not_converted(self):
        """Test timestamp and value pass through verbatim."""
        event = parse_line("SAMPLE 0017 x:y 1.50e3\n")

        assert event.timestamp == "0017"
        assert event.value == "1.50e3"

    def test_extra_tokens_ignored(self):
        """Test trailing tokens after the value are dropped."""
        event = parse_line("SAMPLE 1 x:y 2 trailing junk\n")

        assert event.tokens == ["SAMPLE", "1", "x:y", "2"]

    def test_runs_of_whitespace(self):
        """Test tabs and repeated spaces separate tokens."""
        event = parse_line("  SAMPLE\t\t1   x:y \t 2\n")

        assert event == MetricEvent(EventKind.SAMPLE, "1", "x:y", "2")

    @pytest.mark.parametrize("line", [
        "SAMPLE\n",
        "SAMPLE 100\n",
        "SAMPLE 100 a:b\n",
        "RATE 100 a:b   \n",
    ])
    def test_missing_value_dropped(self, line):
        """Test lines missing a required token yield nothing."""
        assert parse_line(line) is None


class TestParseCounter:
    """Test COUNTER lines."""

    def test_counter_defaults_to_one(self):
        """Test a COUNTER without increment counts 1."""
        event = parse_line("COUNTER 100 a:b\n")

        assert event.value == "1"
        assert event.frames() == [b"", b"COUNTER\0", b"100\0", b"a:b\0", b"1\0"]

    def test_counter_with_increment(self):
        """Test an explicit increment is kept."""
        event = parse_line("COUNTER 100 a:b 5\n")

        assert event.value == "5"

    def test_counter_whitespace_remainder(self):
        """Test trailing whitespace alone still defaults to 1."""
        assert parse_line("COUNTER 100 a:b    \n").value == "1"

    def test_counter_missing_name(self):
        """Test COUNTER needs a name."""
        assert parse_line("COUNTER 100\n") is None


class TestParseState:
    """Test STATE lines."""

    def test_state_with_message(self):
        """Test STATE keeps the free-text message."""
        event = parse_line("STATE 100 a:b ok all clear\n")

        assert event.timestamp == "100"
        assert event.name == "a:b"
        assert event.value == "ok"
        assert event.extra == "all clear"
        assert len(event.frames()) == 6

    def test_state_without_message(self):
        """Test STATE with no message sends an empty remainder."""
        event = parse_line("STATE 100 a:b 0\n")

        assert event.extra == ""
        assert event.frames()[-1] == b"\0"

    def test_state_message_spacing_preserved(self):
        """Test inner spacing of the message is left alone."""
        event = parse_line("STATE 1 a:b 2    disk  almost   full\n")

        assert event.extra == "disk  almost   full"

    def test_state_missing_value(self):
        """Test STATE needs a value token."""
        assert parse_line("STATE 100 a:b\n") is None


class TestParseEvent:
    """Test EVENT lines."""

    def test_event_with_message(self):
        """Test EVENT keeps its message."""
        event = parse_line("EVENT 1700000000 host:reboot system restarted\n")

        assert event.value is None
        assert event.extra == "system restarted"
        assert event.tokens == ["EVENT", "1700000000", "host:reboot", "system restarted"]

    def test_event_defaults_to_empty(self):
        """Test EVENT without a message sends an empty frame."""
        event = parse_line("EVENT 100 reboot\n")

        assert event.extra == ""
        assert event.frames() == [b"", b"EVENT\0", b"100\0", b"reboot\0", b"\0"]


class TestUnrecognized:
    """Test lines that are not events."""

    @pytest.mark.parametrize("line", [
        "BOGUS 1 2 3\n",
        "sample 1 a:b 2\n",
        "SAMPLES 1 a:b 2\n",
        "\n",
        "   \n",
        "",
    ])
    def test_no_event(self, line):
        """Test unknown kinds and blank lines produce nothing."""
        assert parse_line(line) is None

    def test_parse_lines_resumes_after_bad_line(self):
        """Test a bad line does not disturb the lines after it."""
        lines = [
            "SAMPLE 1 a:b 1\n",
            "SAMPLE 2 a:b\n",
            "BOGUS 1 2 3\n",
            "RATE 3 c:d 4\n",
        ]

        events = list(parse_lines(lines))

        assert [e.kind for e in events] == [EventKind.SAMPLE, EventKind.RATE]
        assert [e.timestamp for e in events] == ["1", "3"]


class TestMetricEvent:
    """Test MetricEvent serialization."""

    def test_to_dict(self):
        """Test the JSON view of an event."""
        event = MetricEvent(EventKind.COUNTER, "5", "x:y", "1")

        assert event.to_dict() == {
            "kind": "COUNTER",
            "timestamp": "5",
            "name": "x:y",
            "value": "1",
            "extra": None,
        }

    def test_kind_values(self):
        """Test EventKind values match the wire tags."""
        assert [k.value for k in EventKind] == ["STATE", "COUNTER", "SAMPLE", "RATE", "EVENT"]
