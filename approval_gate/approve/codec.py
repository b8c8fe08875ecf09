"""
Argument compression for job types that declare it.

Compressed args travel as a single-element list holding an envelope
mapping, so they remain a valid job argument list for the broker.
"""

import base64
import json
import zlib
from typing import Any

from approval_gate.constants import COMPRESSED_MARKER


class ZlibArgsCodec:
    """Compresses a job's JSON args with zlib inside a base64 envelope."""

    def __init__(self, level: int = zlib.Z_DEFAULT_COMPRESSION):
        self._level = level

    def is_compressed(self, args: list[Any]) -> bool:
        return (
            len(args) == 1
            and isinstance(args[0], dict)
            and args[0].get(COMPRESSED_MARKER) is True
        )

    def compress(self, args: list[Any]) -> list[Any]:
        if self.is_compressed(args):
            return args

        raw = json.dumps(args).encode("utf-8")
        payload = base64.b64encode(zlib.compress(raw, self._level)).decode("ascii")
        return [{COMPRESSED_MARKER: True, "payload": payload}]

    def decompress(self, args: list[Any]) -> list[Any]:
        if not self.is_compressed(args):
            return args

        raw = zlib.decompress(base64.b64decode(args[0]["payload"]))
        return json.loads(raw.decode("utf-8"))
