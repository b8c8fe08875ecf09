"""
Unit tests for argument compression.
"""

from approval_gate.approve import ZlibArgsCodec
from approval_gate.constants import COMPRESSED_MARKER


class TestZlibArgsCodec:
    """Tests for the zlib args codec."""

    def test_compress_wraps_args_in_envelope(self):
        codec = ZlibArgsCodec()

        envelope = codec.compress(["a", {"approval_key": "K"}])

        assert len(envelope) == 1
        assert envelope[0][COMPRESSED_MARKER] is True
        assert isinstance(envelope[0]["payload"], str)
        assert codec.is_compressed(envelope)
        assert codec.decompress(envelope) == ["a", {"approval_key": "K"}]

    def test_compress_is_idempotent(self):
        codec = ZlibArgsCodec()
        envelope = codec.compress(["a"])

        assert codec.compress(envelope) == envelope

    def test_plain_args_are_not_compressed(self):
        codec = ZlibArgsCodec()

        assert codec.is_compressed([]) is False
        assert codec.is_compressed([{"payload": "x"}]) is False
        assert codec.is_compressed(["a", "b"]) is False
        assert codec.decompress(["a", "b"]) == ["a", "b"]
