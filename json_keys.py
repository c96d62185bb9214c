# json_keys.py
# Byte-level scanner that recovers the declaration order of JSON object keys
#
# =============================================================================
#  SCANNER IMPLEMENTATION: ONE STATE PER STRUCTURAL POSITION
# =============================================================================
#
# Decoding JSON into a dict keeps insertion order in CPython, but most
# consumers of a document (other languages, other decoders, hash maps on the
# wire) do not, and a value tree is far more than we need here. This module
# never builds values. It walks the raw bytes once through a finite-state
# machine and records, for every object, the keys it declares, keyed by the
# dotted path of that object from the root [RFC 8259, section 4].
#
# Design Rationale:
# 1. One byte in, one transition out. All state lives in the Scanner, so a
#    document can arrive in chunks of any size, split anywhere, including in
#    the middle of a key, a string value or an escape sequence.
# 2. Only one byte of lookahead is ever needed: a bare value (number, true,
#    false, null) is only known to end at the following whitespace, ',' or '}'.
#    That byte is re-presented to the next state instead of being consumed.
# 3. Values are skipped, never decoded. String contents and array bodies are
#    read only far enough to find where they end.
#
# Known restriction: objects nested inside arrays are skipped along with the
# rest of the array, so their key order is not recorded.
#
# =============================================================================
#  REFERENCES
# =============================================================================
# [1] RFC 8259 - The JavaScript Object Notation (JSON) standard
# =============================================================================

import argparse
import enum
import json
import logging
import os
import sys
from typing import BinaryIO, Callable, Dict, Iterator, List, Optional, Tuple, Union

from key_path import KeyPath, KeyPathMap, PathNotFound, lookup, record_key, register_path
from log_util import getLogger

# ---------------------------------------------------------------------------
# CONSTANTS AND TUNABLES
# ---------------------------------------------------------------------------
ROOT_PATH_NAME        = "root"    # Path label of the outermost object
DEPTH_LIMIT_DEFAULT   = None      # No nesting limit unless a caller asks for one
CHUNK_SIZE_DEFAULT    = 65536     # 64 KiB reads for parse_stream / parse_file
STREAM_THRESH_DEFAULT = 262144    # 256 KiB - CLI switches to chunked reads above this

_WHITESPACE = frozenset(b" \t\r\n")
_QUOTE      = ord('"')
_BACKSLASH  = ord("\\")
_COLON      = ord(":")
_COMMA      = ord(",")
_LBRACE     = ord("{")
_RBRACE     = ord("}")
_LBRACKET   = ord("[")
_RBRACKET   = ord("]")

logger = getLogger("json_keys")

# Byte source errors (missing file, failed read) reach the caller unchanged.
IoFailure = OSError


# ---------------------------------------------------------------------------
# ERRORS
# ---------------------------------------------------------------------------
class MalformedInput(SyntaxError):
    """
    The input is not a JSON object the scanner can follow.

    offset is the absolute byte offset where scanning stopped, state the
    scanner state at that point and byte the offending byte (None when the
    input simply ran out).
    """
    def __init__(self, message: str, offset: int, state: Optional["State"] = None,
                 byte: Optional[int] = None):
        super().__init__(message)
        self.offset = offset
        self.state = state
        self.byte = byte


# ---------------------------------------------------------------------------
# STATES
# ---------------------------------------------------------------------------
class State(enum.Enum):
    BEGIN_OBJECT                  = "BeginObject"
    BEGIN_FIRST_KEY               = "BeginFirstKey"
    BEGIN_KEY                     = "BeginKey"
    KEY_CHARACTER                 = "KeyCharacter"
    END_KEY                       = "EndKey"
    BEGIN_VALUE                   = "BeginValue"
    VALUE_CHARACTER               = "ValueCharacter"
    VALUE_CHARACTER_WITH_ARRAY    = "ValueCharacterWithArray"
    VALUE_CHARACTER_WITHOUT_QUOTE = "ValueCharacterWithoutQuote"
    END_VALUE                     = "EndValue"
    END_ROOT_OBJECT               = "EndRootObject"


class Action(enum.Enum):
    CONSUME = "consume"    # byte handled, advance
    REWIND  = "rewind"     # byte belongs to the new state, present it again


def _describe(byte: int) -> str:
    return repr(chr(byte)) if byte < 0x80 else f"0x{byte:02x}"


# ---------------------------------------------------------------------------
# SCANNER
# ---------------------------------------------------------------------------
class Scanner:
    """
    Finite-state machine over the bytes of one JSON document.

    A Scanner serves exactly one parse: create it, feed() it any number of
    chunks, then close() it to get the path -> keys mapping. Nothing is
    shared between instances, so parses in different threads are independent.
    """
    def __init__(self, root_name: str = ROOT_PATH_NAME,
                 max_depth: Optional[int] = DEPTH_LIMIT_DEFAULT):
        self.root_name = root_name
        self.max_depth = max_depth
        self.keys: KeyPathMap = {}
        self.state = State.BEGIN_OBJECT
        self.offset = 0

        self._path = KeyPath()
        self._key_buf = bytearray()
        self._last_key: Optional[str] = None
        # Set by a backslash inside a string; the next byte is taken literally.
        self._escaped = False
        self._array_depth = 0
        self._in_array_string = False

        self._steps: Dict[State, Callable[[int], Action]] = {
            State.BEGIN_OBJECT:                  self._begin_object,
            State.BEGIN_FIRST_KEY:               self._begin_first_key,
            State.BEGIN_KEY:                     self._begin_key,
            State.KEY_CHARACTER:                 self._key_character,
            State.END_KEY:                       self._end_key,
            State.BEGIN_VALUE:                   self._begin_value,
            State.VALUE_CHARACTER:               self._value_character,
            State.VALUE_CHARACTER_WITH_ARRAY:    self._value_character_with_array,
            State.VALUE_CHARACTER_WITHOUT_QUOTE: self._value_character_without_quote,
            State.END_VALUE:                     self._end_value,
            State.END_ROOT_OBJECT:               self._end_root_object,
        }

    @property
    def done(self) -> bool:
        """True once the root object has closed."""
        return self.state is State.END_ROOT_OBJECT

    # -- driving ------------------------------------------------------------
    def step(self, byte: int) -> None:
        """Run one byte through the machine, re-presenting it on REWIND."""
        while self._steps[self.state](byte) is Action.REWIND:
            pass
        self.offset += 1

    def feed(self, chunk: Union[bytes, bytearray, memoryview]) -> None:
        for byte in chunk:
            self.step(byte)

    def close(self) -> KeyPathMap:
        """
        Finish the parse and hand over the mapping.

        A document that stops before its root object closes is rejected;
        there is no partial result.
        """
        if not self.done:
            raise self.end_of_input()
        logger.debug("scan complete: %d object path(s) in %d bytes", len(self.keys), self.offset)
        return self.keys

    def end_of_input(self) -> MalformedInput:
        return MalformedInput(
            f"unexpected end of input at offset {self.offset} in state {self.state.name}",
            self.offset, self.state)

    # -- helpers ------------------------------------------------------------
    def _unexpected(self, byte: int) -> MalformedInput:
        return MalformedInput(
            f"unexpected byte {_describe(byte)} at offset {self.offset} in state {self.state.name}",
            self.offset, self.state, byte)

    def _open_object(self, name: str) -> None:
        if self.max_depth is not None and len(self._path) >= self.max_depth:
            raise MalformedInput(f"depth limit exceeded at offset {self.offset}",
                                 self.offset, self.state, _LBRACE)
        self._path.push(name)
        register_path(self.keys, self._path.full_path)
        self.state = State.BEGIN_FIRST_KEY

    def _close_object(self) -> None:
        self._path.pop()
        if self._path.is_at_root():
            self.state = State.END_ROOT_OBJECT
        else:
            # The object just closed was a value of its parent.
            self.state = State.END_VALUE

    def _commit_key(self) -> None:
        # Bytes that are not UTF-8 survive as lone surrogates.
        name = self._key_buf.decode("utf-8", "surrogateescape")
        self._key_buf.clear()
        record_key(self.keys, self._path.full_path, name)
        self._last_key = name

    # -- states -------------------------------------------------------------
    def _begin_object(self, byte: int) -> Action:
        if byte in _WHITESPACE:
            return Action.CONSUME
        if byte != _LBRACE:
            raise self._unexpected(byte)
        self._open_object(self.root_name)
        return Action.CONSUME

    def _begin_first_key(self, byte: int) -> Action:
        # Same as _begin_key, except that an empty object may close here.
        if byte == _RBRACE:
            self._close_object()
            return Action.CONSUME
        return self._begin_key(byte)

    def _begin_key(self, byte: int) -> Action:
        if byte in _WHITESPACE:
            return Action.CONSUME
        if byte != _QUOTE:
            raise self._unexpected(byte)
        self.state = State.KEY_CHARACTER
        return Action.CONSUME

    def _key_character(self, byte: int) -> Action:
        if self._escaped:
            self._key_buf.append(byte)
            self._escaped = False
        elif byte == _BACKSLASH:
            self._escaped = True
        elif byte == _QUOTE:
            self._commit_key()
            self.state = State.END_KEY
        else:
            self._key_buf.append(byte)
        return Action.CONSUME

    def _end_key(self, byte: int) -> Action:
        if byte in _WHITESPACE:
            return Action.CONSUME
        if byte != _COLON:
            raise self._unexpected(byte)
        self.state = State.BEGIN_VALUE
        return Action.CONSUME

    def _begin_value(self, byte: int) -> Action:
        if byte in _WHITESPACE:
            return Action.CONSUME
        if byte == _QUOTE:
            self.state = State.VALUE_CHARACTER
        elif byte == _LBRACKET:
            self._array_depth = 1
            self.state = State.VALUE_CHARACTER_WITH_ARRAY
        elif byte == _LBRACE:
            self._open_object(self._last_key)
        else:
            self.state = State.VALUE_CHARACTER_WITHOUT_QUOTE
            return Action.REWIND
        return Action.CONSUME

    def _value_character(self, byte: int) -> Action:
        if self._escaped:
            self._escaped = False
        elif byte == _BACKSLASH:
            self._escaped = True
        elif byte == _QUOTE:
            self.state = State.END_VALUE
        return Action.CONSUME

    def _value_character_with_array(self, byte: int) -> Action:
        # Brackets only count outside strings; braces never matter here.
        if self._in_array_string:
            if self._escaped:
                self._escaped = False
            elif byte == _BACKSLASH:
                self._escaped = True
            elif byte == _QUOTE:
                self._in_array_string = False
        elif byte == _QUOTE:
            self._in_array_string = True
        elif byte == _LBRACKET:
            self._array_depth += 1
        elif byte == _RBRACKET:
            self._array_depth -= 1
            if not self._array_depth:
                self.state = State.END_VALUE
        return Action.CONSUME

    def _value_character_without_quote(self, byte: int) -> Action:
        if byte == _COMMA or byte == _RBRACE or byte in _WHITESPACE:
            self.state = State.END_VALUE
            return Action.REWIND
        return Action.CONSUME

    def _end_value(self, byte: int) -> Action:
        if byte in _WHITESPACE:
            return Action.CONSUME
        if byte == _COMMA:
            self.state = State.BEGIN_KEY
        elif byte == _RBRACE:
            self._close_object()
        else:
            raise self._unexpected(byte)
        return Action.CONSUME

    def _end_root_object(self, byte: int) -> Action:
        # Anything after the root object is ignored.
        return Action.CONSUME


# ---------------------------------------------------------------------------
# PUBLIC API
# ---------------------------------------------------------------------------
def parse(data: Union[bytes, bytearray, memoryview, str], *,
          root_name: str = ROOT_PATH_NAME,
          max_depth: Optional[int] = DEPTH_LIMIT_DEFAULT) -> KeyPathMap:
    """
    Scan one complete JSON document held in memory.

    Returns {full path: [keys in declaration order]}. Text is encoded as
    UTF-8 first. Raises MalformedInput on any structural error.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    scanner = Scanner(root_name=root_name, max_depth=max_depth)
    scanner.feed(data)
    return scanner.close()


def parse_stream(stream: BinaryIO, *, chunk_size: int = CHUNK_SIZE_DEFAULT,
                 root_name: str = ROOT_PATH_NAME,
                 max_depth: Optional[int] = DEPTH_LIMIT_DEFAULT) -> KeyPathMap:
    """
    Scan a document from a readable object in chunks of chunk_size.

    Reading stops at end of stream or as soon as the root object has closed.
    Errors raised by stream.read() propagate untouched.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    scanner = Scanner(root_name=root_name, max_depth=max_depth)
    chunks = 0
    while not scanner.done:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8")
        scanner.feed(chunk)
        chunks += 1
    logger.debug("read %d chunk(s) of up to %d bytes", chunks, chunk_size)
    return scanner.close()


def parse_file(path: Union[str, "os.PathLike[str]"], *, chunk_size: int = CHUNK_SIZE_DEFAULT,
               root_name: str = ROOT_PATH_NAME,
               max_depth: Optional[int] = DEPTH_LIMIT_DEFAULT) -> KeyPathMap:
    with open(path, "rb") as fh:
        return parse_stream(fh, chunk_size=chunk_size, root_name=root_name,
                            max_depth=max_depth)


def transitions(data: Union[bytes, bytearray, memoryview, str], *,
                root_name: str = ROOT_PATH_NAME,
                max_depth: Optional[int] = DEPTH_LIMIT_DEFAULT) -> Iterator[Tuple[int, int, State]]:
    """
    Yield (offset, byte, state after the byte) for every byte of data.

    Debugging aid; raises MalformedInput at the offending byte, or after the
    last byte when the root object never closed, like parse().
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    scanner = Scanner(root_name=root_name, max_depth=max_depth)
    for byte in data:
        offset = scanner.offset
        scanner.step(byte)
        yield offset, byte, scanner.state
    if not scanner.done:
        raise scanner.end_of_input()


# ---------------------------------------------------------------------------
# CLI ENTRYPOINT
# ---------------------------------------------------------------------------
def _positive_int(text: str) -> int:
    value = int(text)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {text}")
    return value


def _cli(argv: List[str]) -> int:
    """
    Print the key order of a JSON file as JSON.

    Exit codes: 0 on success, 1 on malformed input or unknown --path,
    2 when the file cannot be read.
    """
    ap = argparse.ArgumentParser(description="Report JSON object keys in declaration order")
    ap.add_argument("file", help="JSON file to scan")
    ap.add_argument("--path", help="print only the keys recorded under this dotted path")
    ap.add_argument("--root-name", default=ROOT_PATH_NAME, help="path label of the outermost object")
    ap.add_argument("--chunk-size", type=_positive_int, default=CHUNK_SIZE_DEFAULT)
    ap.add_argument("--max-depth", type=_positive_int, default=DEPTH_LIMIT_DEFAULT)
    ap.add_argument("--streaming-threshold", type=int, default=STREAM_THRESH_DEFAULT)
    ap.add_argument("--debug", action="store_true", help="dump scanner transitions and exit")
    args = ap.parse_args(argv)

    if args.debug:
        logger.setLevel(logging.DEBUG)

    try:
        if args.debug:
            with open(args.file, "rb") as fh:
                data = fh.read()
            for offset, byte, state in transitions(data, root_name=args.root_name,
                                                   max_depth=args.max_depth):
                print(f"{offset:>8} {_describe(byte):>6} {state.name}")
            return 0

        fsize = os.path.getsize(args.file)
        if fsize > args.streaming_threshold:
            logger.debug("%s is %d bytes, scanning in chunks of %d", args.file, fsize, args.chunk_size)
            keys = parse_file(args.file, chunk_size=args.chunk_size,
                              root_name=args.root_name, max_depth=args.max_depth)
        else:
            with open(args.file, "rb") as fh:
                keys = parse(fh.read(), root_name=args.root_name, max_depth=args.max_depth)

        result = keys if args.path is None else lookup(keys, args.path)
    except OSError as exc:
        logger.error("cannot read %s: %s", args.file, exc)
        return 2
    except MalformedInput as exc:
        logger.error("MalformedInput: %s", exc)
        return 1
    except PathNotFound as exc:
        logger.error("%s", exc.args[0])
        return 1

    text = json.dumps(result, indent=2, ensure_ascii=False)
    # Keys holding non-UTF-8 bytes carry lone surrogates; show them as U+FFFD.
    print(text.encode("utf-8", "surrogateescape").decode("utf-8", "replace"))
    return 0


def main() -> None:
    sys.exit(_cli(sys.argv[1:]))


# ---------------------------------------------------------------------------
# MAIN GUARD
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    main()
