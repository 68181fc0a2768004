import json

import pytest

from src.verifier.services.chunk_protocol import encode_chunk, frame_sse


def test_encode_chunk_matches_wire_format():
    assert encode_chunk("Hello") == '0:"Hello"\n'


@pytest.mark.parametrize(
    "fragment",
    ['He said "no"', "line\nbreak\ttab", "Reklamacja została przyjęta ✓", "back\\slash", ""],
)
def test_encoded_payload_parses_back_to_fragment(fragment):
    chunk = encode_chunk(fragment)
    assert chunk.startswith("0:") and chunk.endswith("\n")
    assert json.loads(chunk[2:-1]) == fragment


def test_unencodable_fragment_is_dropped():
    assert encode_chunk("broken \ud800 surrogate") == ""
    assert encode_chunk(None) == ""


def test_frame_sse_wraps_chunk_as_data_line():
    assert frame_sse('0:"Hi"\n') == 'data:0:"Hi"\n\n'
    assert frame_sse("") == ""
