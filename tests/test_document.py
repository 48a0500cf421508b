"""Tests for text snapshots and newline handling."""

from fix_dockerfile.document import TextDocument, detect_newline, host_newline
from fix_dockerfile.schema import Position, Range, RepairEdit


class TestNewlines:
    """Test newline detection."""

    def test_detects_crlf(self):
        """CRLF wins when present."""
        assert detect_newline("FROM node\r\nCMD x\r\n") == "\r\n"

    def test_detects_lf(self):
        """Plain LF documents keep LF."""
        assert detect_newline("FROM node\nCMD x") == "\n"

    def test_no_newline_falls_back_to_host(self):
        """A single-line document uses the host newline."""
        assert detect_newline("FROM node") == host_newline()


class TestTextDocument:
    """Test line and offset arithmetic."""

    def test_line_text_strips_terminators(self):
        """Line content never includes \\r or \\n."""
        doc = TextDocument("FROM node\r\nRUN ls\r\n")
        assert doc.line_count == 3
        assert doc.line_text(0) == "FROM node"
        assert doc.line_text(1) == "RUN ls"
        assert doc.line_text(2) == ""
        assert doc.line_text(7) == ""

    def test_offsets_round_trip(self):
        """position_at inverts offset_at inside line content."""
        doc = TextDocument("FROM node\nRUN ls\n")
        position = Position(line=1, character=4)
        assert doc.offset_at(position) == 14
        assert doc.position_at(14) == position

    def test_offset_is_clamped(self):
        """Characters past the line end clamp to the line end."""
        doc = TextDocument("FROM node\nRUN ls\n")
        assert doc.offset_at(Position(line=0, character=99)) == 9
        assert doc.offset_at(Position(line=9, character=0)) == len(doc.text)

    def test_offset_inside_crlf_maps_to_line_end(self):
        """An offset between \\r and \\n belongs to the line content end."""
        doc = TextDocument("FROM node\r\nRUN ls")
        assert doc.position_at(10) == Position(line=0, character=9)

    def test_get_text(self):
        """get_text slices by range."""
        doc = TextDocument("FROM node\nRUN apt-get install curl\n")
        assert doc.get_text(Range.from_coords(1, 4, 1, 19)) == "apt-get install"

    def test_apply_insertion(self):
        """An empty range inserts text."""
        doc = TextDocument("FROM node\nCMD x\n")
        edit = RepairEdit(
            range=Range.empty_at(Position(line=1, character=0)),
            replacement_text="EXPOSE 80\n",
            code="R:HERMITPORTS",
        )
        assert doc.apply(edit) == "FROM node\nEXPOSE 80\nCMD x\n"
        # the snapshot itself is unchanged
        assert doc.text == "FROM node\nCMD x\n"

    def test_end_position(self):
        """The end position sits after the last character."""
        assert TextDocument("FROM node\n").end_position() == Position(line=1, character=0)
        assert TextDocument("FROM node").end_position() == Position(line=0, character=9)
