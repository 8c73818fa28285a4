import os

import pytest

from tailers.errors import (
    ReadError,
    RegistrationError,
    RotationDetected,
    SourceMissing,
    SourceNotFound,
)
from tailers.reader import LineReader, register


@pytest.fixture
def log_file(logs):
    path = logs / "a.log"
    path.write_text("")
    return path


def test_register_starts_at_end_of_file(logs, append):
    path = logs / "old.log"
    path.write_text("already here\n")

    handle = register(path, 3)
    reader = LineReader(handle)

    assert handle.index == 3
    assert handle.cursor == len("already here\n")
    assert reader.pull() == []

    append(path, "new\n")
    assert reader.pull() == ["new"]
    reader.close()


def test_register_missing_file(logs):
    with pytest.raises(SourceNotFound) as exc:
        register(logs / "nope.log", 0)
    assert exc.value.path == logs / "nope.log"


def test_register_directory_is_rejected(logs):
    with pytest.raises(RegistrationError):
        register(logs, 0)


@pytest.mark.skipif(os.name != "posix" or os.geteuid() == 0, reason="needs non-root posix")
def test_register_unreadable_file(log_file):
    from tailers.errors import PermissionDenied

    log_file.chmod(0)
    try:
        with pytest.raises(PermissionDenied):
            register(log_file, 0)
    finally:
        log_file.chmod(0o644)


def test_no_new_data_is_empty(log_file):
    reader = LineReader(register(log_file, 0))
    assert reader.pull() == []
    assert reader.pull() == []


def test_batching_does_not_change_lines(logs, append):
    one = logs / "one.log"
    three = logs / "three.log"
    one.write_text("")
    three.write_text("")
    r1 = LineReader(register(one, 0))
    r3 = LineReader(register(three, 1))

    append(one, "l1\nl2\nl3\n")
    for line in ("l1\n", "l2\n", "l3\n"):
        append(three, line)

    assert r1.pull() == ["l1", "l2", "l3"]
    assert r3.pull() == ["l1", "l2", "l3"]
    assert r1.handle.cursor == r3.handle.cursor == 9


def test_partial_line_waits_for_terminator(log_file, append):
    reader = LineReader(register(log_file, 0))

    append(log_file, "x")
    assert reader.pull() == []
    assert reader.handle.cursor == 0

    append(log_file, "y")
    assert reader.pull() == []

    append(log_file, "\n")
    assert reader.pull() == ["xy"]
    assert reader.handle.cursor == 3
    assert reader.pull() == []


def test_trailing_partial_after_complete_lines(log_file, append):
    reader = LineReader(register(log_file, 0))

    append(log_file, "first\nsec")
    assert reader.pull() == ["first"]
    assert reader.handle.cursor == len("first\n")

    append(log_file, "ond\n")
    assert reader.pull() == ["second"]


def test_empty_lines_are_lines(log_file, append):
    reader = LineReader(register(log_file, 0))
    append(log_file, "\n\nend\n")
    assert reader.pull() == ["", "", "end"]


def test_invalid_utf8_is_replaced(log_file):
    reader = LineReader(register(log_file, 0))
    with open(log_file, "ab") as f:
        f.write(b"bad \xff byte\n")
    assert reader.pull() == ["bad \ufffd byte"]


def test_small_chunks_split_lines_correctly(log_file, append):
    reader = LineReader(register(log_file, 0), chunk_size=3, max_pull=4)
    append(log_file, "alpha\nbeta\ngamma\n")

    lines = []
    while True:
        pulled = reader.pull()
        if not pulled and not reader.backlog:
            break
        lines.extend(pulled)
    assert lines == ["alpha", "beta", "gamma"]


def test_long_line_spans_several_bounded_pulls(log_file, append):
    reader = LineReader(register(log_file, 0), chunk_size=2, max_pull=4)
    append(log_file, "abcdefghij\n")

    assert reader.pull() == []
    assert reader.backlog
    assert reader.pull() == []
    assert reader.backlog
    assert reader.pull() == ["abcdefghij"]
    assert reader.handle.cursor == log_file.stat().st_size
    assert reader.pull() == []
    assert not reader.backlog


def test_truncation_is_detected(log_file, append):
    reader = LineReader(register(log_file, 0))
    append(log_file, "one\ntwo\n")
    assert reader.pull() == ["one", "two"]

    log_file.write_text("")
    with pytest.raises(RotationDetected) as exc:
        reader.pull()
    assert "truncated" in str(exc.value)


def test_replacement_is_detected_and_reopen_reads_from_start(log_file, append):
    reader = LineReader(register(log_file, 0))
    append(log_file, "old\n")
    assert reader.pull() == ["old"]

    rotated = log_file.with_suffix(".log.1")
    log_file.rename(rotated)
    log_file.write_text("fresh\n")

    with pytest.raises(RotationDetected):
        reader.pull()
    reader.reopen()
    assert reader.handle.cursor == 0
    assert reader.pull() == ["fresh"]


def test_lines_written_before_rotation_are_delivered_first(log_file, append):
    reader = LineReader(register(log_file, 0))
    append(log_file, "last words\n")
    log_file.rename(log_file.with_suffix(".log.1"))
    log_file.write_text("")

    assert reader.pull() == ["last words"]
    with pytest.raises(RotationDetected):
        reader.pull()


def test_removed_file_is_a_read_error(log_file):
    reader = LineReader(register(log_file, 0))
    log_file.unlink()
    with pytest.raises(ReadError) as exc:
        reader.pull()
    assert isinstance(exc.value, SourceMissing)


def test_reopen_of_missing_file_is_a_read_error(log_file):
    reader = LineReader(register(log_file, 0))
    log_file.unlink()
    with pytest.raises(ReadError):
        reader.reopen()


def test_pull_after_close_is_a_read_error(log_file):
    reader = LineReader(register(log_file, 0))
    reader.close()
    with pytest.raises(ReadError):
        reader.pull()
