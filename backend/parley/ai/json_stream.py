"""
Incremental recovery of JSON objects from a streamed body.

Gemini's streamGenerateContent returns one JSON array whose elements arrive
over many network reads, and a read may end anywhere: inside a string, after
an escape character, in the middle of a multi-byte UTF-8 sequence. The parser
keeps whatever is incomplete buffered and emits each top-level object as soon
as its closing brace arrives.

Partial-input handling:

* bytes are decoded with an incremental UTF-8 decoder, so a split code point
  is held back until its remaining bytes arrive;
* characters between top-level objects (`[`, `,`, `]`, whitespace) are
  skipped;
* braces inside string literals, including escaped quotes, do not count
  toward nesting depth;
* an object that is balanced but fails to decode is dropped and scanning
  continues with the next one.
"""

import codecs
import json
import logging
from typing import Any, Dict, List, Optional, Union


logger = logging.getLogger(__name__)


class IncrementalJSONParser:
    """Brace-depth state machine over a growing text buffer."""

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._scan = 0
        self._start: Optional[int] = None
        self._depth = 0
        self._in_string = False
        self._escape = False

    @property
    def has_partial(self) -> bool:
        """True while an object has been opened but not yet closed."""
        return self._depth > 0

    def feed(self, data: Union[str, bytes]) -> List[Dict[str, Any]]:
        """Add input and return every object completed by it, in order."""
        if isinstance(data, bytes):
            data = self._decoder.decode(data)
        self._buffer += data

        objects = []
        buf = self._buffer
        i = self._scan
        while i < len(buf):
            ch = buf[i]
            if self._in_string:
                if self._escape:
                    self._escape = False
                elif ch == "\\":
                    self._escape = True
                elif ch == '"':
                    self._in_string = False
            elif self._depth > 0 and ch == '"':
                self._in_string = True
            elif ch == "{":
                if self._depth == 0:
                    self._start = i
                self._depth += 1
            elif ch == "}" and self._depth > 0:
                self._depth -= 1
                if self._depth == 0:
                    obj = self._decode(buf[self._start:i + 1])
                    if obj is not None:
                        objects.append(obj)
                    self._start = None
            i += 1

        # Keep only the unfinished object, rebased to the start of the buffer.
        if self._start is None:
            self._buffer = ""
            self._scan = 0
        else:
            self._buffer = buf[self._start:]
            self._scan = i - self._start
            self._start = 0

        return objects

    @staticmethod
    def _decode(text: str) -> Optional[Dict[str, Any]]:
        try:
            obj = json.loads(text)
        except json.JSONDecodeError:
            logger.debug("Skipping undecodable stream object (%d chars)", len(text))
            return None
        if not isinstance(obj, dict):
            return None
        return obj
