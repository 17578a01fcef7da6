import argparse
import json
import logging
import operator
import sys
from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Union

import cv2
import numpy as np

from qrgrid_logging import setup_logging

__version__ = '0.1.0'

BASE_SIZE = 21
MIN_VERSION = 1
MAX_VERSION = 40

logger = logging.getLogger('qrgrid')


class Cell(IntEnum):
    LIGHT = 0
    DARK = 1
    UNSET = 2


class Mode(IntEnum):
    NUMERIC = 0b0001
    ALPHANUMERIC = 0b0010
    BINARY = 0b0100
    KANJI = 0b1000


class QRGridError(ValueError):
    pass


class InvalidVersion(QRGridError):
    def __init__(self, version):
        super().__init__(f'invalid version: {version!r} (expected {MIN_VERSION}..{MAX_VERSION})')
        self.version = version


class InvalidMode(QRGridError):
    def __init__(self, mode):
        super().__init__(f'invalid mode specified: {mode!r}')
        self.mode = mode


def dimension(version) -> int:
    """Side length of a symbol: 21 for version 1, growing by 4 per version."""
    if isinstance(version, bool):
        raise InvalidVersion(version)
    try:
        version = operator.index(version)
    except TypeError:
        raise InvalidVersion(version) from None
    if not MIN_VERSION <= version <= MAX_VERSION:
        raise InvalidVersion(version)
    return BASE_SIZE + (version - 1) * 4


def initialize(size) -> np.ndarray:
    return np.full((size, size), Cell.UNSET, dtype=np.uint8)


def finder_template():
    template = np.zeros((8, 8), dtype=np.uint8)
    cv2.rectangle(template, (0, 0), (6, 6), int(Cell.DARK), 1)
    cv2.rectangle(template, (2, 2), (4, 4), int(Cell.DARK), -1)
    return template


def alignment_template():
    template = np.zeros((5, 5), dtype=np.uint8)
    cv2.rectangle(template, (0, 0), (4, 4), int(Cell.DARK), -1)
    cv2.rectangle(template, (1, 1), (3, 3), int(Cell.LIGHT), 1)
    return template


def add_finder_patterns(grid):
    s = grid.shape[0]
    offset = s - 8
    finder = finder_template()
    grid[:8, :8] = finder
    # the solid ring faces inward on the mirrored corners
    grid[:8, offset:] = finder.T[:, ::-1]
    grid[offset:, :8] = finder.T[::-1, :]

    a_offset = s - 9
    grid[a_offset:a_offset + 5, a_offset:a_offset + 5] = alignment_template()

    # Dark module
    grid[offset][8] = Cell.DARK


def add_timing_patterns(grid):
    for i in range(8, grid.shape[0] - 8):
        grid[6][i] = i % 2 ^ 1
        grid[i][6] = i % 2 ^ 1


def stamp(grid):
    add_finder_patterns(grid)
    add_timing_patterns(grid)
    return grid


def parse_mode(value) -> Mode:
    """Decode a one-hot mode value.

    Accepts a :class:`Mode`, its integer value, a decimal string such as
    ``"2"`` or a mode name such as ``"alphanumeric"``.
    """
    if isinstance(value, Mode):
        return value
    if isinstance(value, str):
        name = value.strip()
        if name.isdecimal():
            value = int(name)
        elif name.upper() in Mode.__members__:
            return Mode[name.upper()]
        else:
            raise InvalidMode(value)
    if isinstance(value, bool):
        raise InvalidMode(value)
    try:
        return Mode(operator.index(value))
    except (TypeError, ValueError):
        raise InvalidMode(value) from None


def set_mode(grid, mode) -> Mode:
    mode = parse_mode(mode)
    d = grid.shape[0] - 1
    grid[d][d] = int(mode is Mode.KANJI)
    grid[d][d - 1] = int(mode is Mode.BINARY)
    grid[d - 1][d] = int(mode is Mode.ALPHANUMERIC)
    grid[d - 1][d - 1] = int(mode is Mode.NUMERIC)
    return mode


def set_data_length(grid, payload):
    # Payload encoding is not implemented; the payload only rides along on
    # the Symbol.
    return grid


@dataclass(frozen=True)
class Symbol:
    version: int
    payload: bytes
    mode: Optional[Mode]
    cells: bytes
    dimension: int

    @property
    def grid(self):
        """(dimension, dimension) view of ``cells``; backed by bytes, so it can't be made writeable."""
        return np.frombuffer(self.cells, dtype=np.uint8).reshape(self.dimension, self.dimension)


def build(version, payload: Union[bytes, str], mode=Mode.ALPHANUMERIC) -> Symbol:
    """Build a symbol with all structural patterns stamped.

    Pass ``mode=None`` to leave the mode indicator cells unset. Raises
    :class:`InvalidVersion` or :class:`InvalidMode`, or ``TypeError`` when the
    payload is neither text nor a byte sequence; nothing is returned on
    failure.
    """
    size = dimension(version)
    if isinstance(payload, str):
        payload = payload.encode('utf-8')
    elif isinstance(payload, (bytes, bytearray, memoryview)):
        payload = bytes(payload)
    else:
        raise TypeError(f'payload must be str or bytes, not {type(payload).__name__}')

    grid = stamp(initialize(size))
    if mode is not None:
        mode = set_mode(grid, mode)
    set_data_length(grid, payload)
    return Symbol(version=operator.index(version), payload=payload, mode=mode,
                  cells=grid.tobytes(), dimension=size)


@dataclass(frozen=True)
class Glyphs:
    dark: str = '█'
    light: str = ' '
    unset: str = '·'
    frame: str = '█'

    def __post_init__(self):
        for name in ('dark', 'light', 'unset', 'frame'):
            if len(getattr(self, name)) != 1:
                raise ValueError(f'{name} glyph must be a single character')
        if len({self.dark, self.light, self.unset}) != 3:
            raise ValueError('dark, light and unset glyphs must be distinct')


GLYPHS = Glyphs()
QUIET_ZONE = 2


def render(symbol: Symbol, border=False, glyphs: Glyphs = GLYPHS) -> List[str]:
    # indexed by Cell value
    table = np.array([glyphs.light, glyphs.dark, glyphs.unset])
    text = table[symbol.grid]
    if border:
        inset = QUIET_ZONE + 1
        framed = np.full((text.shape[0] + 2 * inset, text.shape[1] + 2 * inset), glyphs.frame)
        framed[1:-1, 1:-1] = glyphs.light
        framed[inset:-inset, inset:-inset] = text
        text = framed
    return [''.join(row) for row in text]


LOG_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='qrgrid',
        description='Stamp the structural patterns of a QR symbol and print it as text.')
    parser.add_argument('--data', help='data to be encoded; read as JSON from stdin when omitted')
    parser.add_argument('--code-version', type=int, default=1, help='QR code version (1-40)')
    parser.add_argument('--mode', default='2',
                        help='QR code mode: Numeric(1), Alphanumeric(2), Binary(4), Kanji(8)')
    parser.add_argument('--no-mode', action='store_true', help='leave the mode indicator cells unset')
    parser.add_argument('--border', action='store_true', help='draw a quiet zone and frame around the symbol')
    parser.add_argument('-v', '--verbose', action='count', default=0, help='increase log verbosity')
    parser.add_argument('--log-file', help='also write log output to this file')
    parser.add_argument('-V', '--version', action='version', version=f'%(prog)s {__version__}')
    return parser.parse_args(argv)


def read_stdin_args(args):
    request = json.load(sys.stdin)
    if not isinstance(request, dict):
        raise ValueError('expected a JSON object on stdin')
    args.data = request['content']
    args.code_version = request.get('version', args.code_version)
    args.mode = request.get('mode', args.mode)
    return args


def main(argv=None):
    args = parse_args(argv)
    setup_logging(LOG_LEVELS[min(args.verbose, len(LOG_LEVELS) - 1)], args.log_file)

    try:
        if args.data is None:
            args = read_stdin_args(args)
        mode = None if args.no_mode else args.mode
        symbol = build(args.code_version, args.data, mode)
    except QRGridError as e:
        logger.error('%s', e)
        return 1
    except (ValueError, KeyError, TypeError) as e:
        logger.error('could not read arguments from stdin: %s', e)
        return 1

    logger.debug('built version %d symbol, %dx%d', symbol.version, symbol.dimension, symbol.dimension)
    for line in render(symbol, border=args.border):
        print(line)
    return 0


if __name__ == '__main__':
    sys.exit(main())
