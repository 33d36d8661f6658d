"""Tests for per-chunk parsing and geo enrichment."""
import csv
import io
import logging

import pytest

from conftest import FakeReader
from iisgeolocate.services.geo import GeoResolver, UniqueIpRegistry
from iisgeolocate.services.logparser.addresses import AddressClassifier
from iisgeolocate.services.logparser.chunker import Chunk, HeaderAwareChunker
from iisgeolocate.services.logparser.processor import ChunkRecordProcessor, parse_row


def make_chunk(*lines: str) -> Chunk:
    stream = io.StringIO("".join(f"{line}\n" for line in lines))
    return HeaderAwareChunker().split(stream)[0]


def read_csv(output: io.StringIO) -> list[list[str]]:
    return list(csv.reader(io.StringIO(output.getvalue())))


class CountingStringIO(io.StringIO):
    def __init__(self) -> None:
        super().__init__()
        self.flushes = 0

    def flush(self) -> None:
        self.flushes += 1
        super().flush()


@pytest.fixture
def bad_sink() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def processor(resolver: GeoResolver, bad_sink: io.StringIO) -> ChunkRecordProcessor:
    return ChunkRecordProcessor(resolver, bad_sink)


def test_parse_row_quoted_field() -> None:
    """A quoted field may contain the space delimiter."""
    assert parse_row('GET /a "Mozilla 5.0" 200') == ["GET", "/a", "Mozilla 5.0", "200"]


def test_parse_row_bad_quote() -> None:
    with pytest.raises(csv.Error):
        parse_row('GET "a"b 200')


def test_valid_and_bad_rows(processor: ChunkRecordProcessor, bad_sink: io.StringIO, registry: UniqueIpRegistry) -> None:
    """Malformed rows go verbatim to the bad sink and never into the output."""
    chunk = make_chunk(
        "#Fields: date time c-ip",
        "2024-01-01 00:00:01 203.0.113.5",
        "bad row only one token",
        "#Fields: date time c-ip",
        "2024-01-01 00:00:02 198.51.100.7",
    )
    output = io.StringIO()
    stats = processor.process(chunk, output)

    assert read_csv(output) == [
        ["date", "time", "c_ip", "GeoCity", "GeoCountry"],
        ["2024-01-01", "00:00:01", "203.0.113.5", "New_York", "United_States"],
        ["2024-01-01", "00:00:02", "198.51.100.7", "Rio_de_Janeiro", "Brazil"],
    ]
    assert bad_sink.getvalue() == "bad row only one token\n"
    assert (stats.rows, stats.written, stats.bad, stats.resolved) == (3, 2, 1, 2)
    assert [e.ip_address for e in registry] == ["203.0.113.5", "198.51.100.7"]


def test_registry_keeps_unsanitized_names(processor: ChunkRecordProcessor, registry: UniqueIpRegistry) -> None:
    processor.process(make_chunk("#Fields: c-ip", "198.51.100.7"), io.StringIO())
    entry = registry.get("198.51.100.7")
    assert entry is not None
    assert (entry.city, entry.country) == ("Rio de Janeiro", "Brazil")


@pytest.mark.parametrize("ip", ["127.0.0.1", "::1", "10.1.2.3", "192.168.0.10", "fe80::1c2d:3e4f"])
def test_local_addresses_bypass_resolver(
    processor: ChunkRecordProcessor, fake_reader: FakeReader, registry: UniqueIpRegistry, ip: str
) -> None:
    output = io.StringIO()
    stats = processor.process(make_chunk("#Fields: time c-ip", f"00:00:01 {ip}"), output)

    assert read_csv(output)[1] == ["00:00:01", ip, "NA", "NA"]
    assert stats.local == 1
    assert fake_reader.calls == []
    assert ip not in registry


def test_header_only_output_for_empty_chunk(processor: ChunkRecordProcessor) -> None:
    output = io.StringIO()
    stats = processor.process(make_chunk("#Fields: date time c-ip"), output)
    assert read_csv(output) == [["date", "time", "c_ip", "GeoCity", "GeoCountry"]]
    assert stats.rows == 0


def test_quoted_rows_count_as_one_field(processor: ChunkRecordProcessor, bad_sink: io.StringIO) -> None:
    output = io.StringIO()
    processor.process(
        make_chunk("#Fields: c-ip cs(User-Agent)", '203.0.113.5 "Mozilla 5.0 (Windows)"'),
        output,
    )
    assert read_csv(output)[1] == ["203.0.113.5", "Mozilla 5.0 (Windows)", "New_York", "United_States"]
    assert bad_sink.getvalue() == ""


def test_malformed_quoting_is_bad_data(processor: ChunkRecordProcessor, bad_sink: io.StringIO) -> None:
    stats = processor.process(make_chunk("#Fields: c-ip cs-uri-stem", '203.0.113.5 "/a"b'), io.StringIO())
    assert stats.bad == 1
    assert bad_sink.getvalue() == '203.0.113.5 "/a"b\n'


def test_bad_rows_do_not_touch_registry(processor: ChunkRecordProcessor, fake_reader: FakeReader, registry: UniqueIpRegistry) -> None:
    processor.process(make_chunk("#Fields: date c-ip", "2024-01-01 203.0.113.5 extra"), io.StringIO())
    assert fake_reader.calls == []
    assert len(registry) == 0


def test_bad_row_warning(processor: ChunkRecordProcessor, caplog) -> None:
    with caplog.at_level(logging.WARNING):
        processor.process(make_chunk("#Fields: date c-ip", "oops"), io.StringIO())
    assert "Bad data found! Ignoring!!! Row: 'oops'" in caplog.text


def test_bad_row_warning_suppressed(resolver: GeoResolver, bad_sink: io.StringIO, caplog) -> None:
    processor = ChunkRecordProcessor(resolver, bad_sink, suppress_bad_lines=True)
    with caplog.at_level(logging.WARNING):
        processor.process(make_chunk("#Fields: date c-ip", "oops"), io.StringIO())
    assert "Bad data found" not in caplog.text
    assert bad_sink.getvalue() == "oops\n"


def test_no_output_still_resolves(processor: ChunkRecordProcessor, registry: UniqueIpRegistry) -> None:
    """Without an output stream rows are still geolocated for the summary."""
    stats = processor.process(make_chunk("#Fields: c-ip", "203.0.113.5", "198.51.100.7"))
    assert stats.written == 0
    assert stats.resolved == 2
    assert len(registry) == 2


def test_periodic_flush(resolver: GeoResolver, bad_sink: io.StringIO) -> None:
    processor = ChunkRecordProcessor(resolver, bad_sink, flush_interval=2)
    output = CountingStringIO()
    processor.process(make_chunk("#Fields: c-ip", *["203.0.113.5"] * 5), output)
    # rows 2 and 4, then the final flush
    assert output.flushes == 3


def test_flush_interval_must_be_positive(resolver: GeoResolver, bad_sink: io.StringIO) -> None:
    with pytest.raises(ValueError):
        ChunkRecordProcessor(resolver, bad_sink, flush_interval=0)


def test_missing_ip_column(processor: ChunkRecordProcessor, fake_reader: FakeReader, caplog) -> None:
    output = io.StringIO()
    with caplog.at_level(logging.WARNING):
        processor.process(make_chunk("#Fields: date time", "2024-01-01 00:00:01"), output)
    assert read_csv(output)[1] == ["2024-01-01", "00:00:01", "NA", "NA"]
    assert fake_reader.calls == []
    assert "c_ip not in schema" in caplog.text


def test_custom_ip_field(resolver: GeoResolver, bad_sink: io.StringIO) -> None:
    processor = ChunkRecordProcessor(resolver, bad_sink, ip_field="X-Forwarded-For")
    output = io.StringIO()
    processor.process(make_chunk("#Fields: c-ip X-Forwarded-For", "10.0.0.1 203.0.113.5"), output)
    assert read_csv(output)[1][-2:] == ["New_York", "United_States"]


def test_reserved_ranges_only_skipped_when_enabled(bad_sink: io.StringIO) -> None:
    reader = FakeReader(cities={"172.16.5.4": ("Somewhere", "Nowhere")})
    default = ChunkRecordProcessor(GeoResolver(reader, UniqueIpRegistry()), bad_sink)
    default.process(make_chunk("#Fields: c-ip", "172.16.5.4"), io.StringIO())
    assert reader.calls == ["172.16.5.4"]

    reader = FakeReader(cities={"172.16.5.4": ("Somewhere", "Nowhere")})
    broad = ChunkRecordProcessor(
        GeoResolver(reader, UniqueIpRegistry()),
        bad_sink,
        classifier=AddressClassifier(skip_reserved_ranges=True),
    )
    stats = broad.process(make_chunk("#Fields: c-ip", "172.16.5.4"), io.StringIO())
    assert reader.calls == []
    assert stats.local == 1
