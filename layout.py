import os
import re
from pathlib import Path
from typing import Sequence

import numpy as np

from errors import ConfigurationError
from hardware import KeyboardHardware, Position

DEFAULT_HARDWARE = 'ansi'
LAYOUTS_DIR = Path(__file__).resolve().parent / 'layouts'


class KeyboardLayout:
    '''
    A bijection between the characters of an alphabet and the key positions of a hardware.

    Characters and positions are identified by stable integer ids: the char id is the index
    in `chars`, the position id is the index in `hardware.positions`. The bijection is kept
    as two inverse arrays:

        char_at_pos[position id] = char id
        pos_of_char[char id]     = position id

    so that swapping two keys is a handful of array writes.
    '''
    def __init__(
        self,
        hardware: KeyboardHardware,
        chars: Sequence[str],
        char_at_pos: Sequence[int] | np.ndarray | None = None,
        name: str = '',
    ):
        self.hardware = hardware
        self.chars = tuple(chars)
        self.name = name

        if len(self.chars) != len(hardware.positions):
            raise ConfigurationError(
                f"An alphabet of {len(self.chars)} characters does not fit the "
                f"{len(hardware.positions)} keys of {hardware.name}"
            )
        if len(set(self.chars)) != len(self.chars):
            duplicates = sorted(set(c for c in self.chars if self.chars.count(c) > 1))
            raise ConfigurationError(f"Characters must be unique, duplicated: {' '.join(duplicates)}")
        if any(len(c) != 1 for c in self.chars):
            raise ConfigurationError("Every character of a layout must be a single character")

        N = len(self.chars)
        if char_at_pos is None:
            self.char_at_pos = np.arange(N, dtype=np.int64)
        else:
            self.char_at_pos = np.array(char_at_pos, dtype=np.int64)
            if self.char_at_pos.shape != (N,) or not np.array_equal(np.sort(self.char_at_pos), np.arange(N)):
                raise ConfigurationError("char_at_pos must be a permutation of the character ids")

        self.pos_of_char = np.empty(N, dtype=np.int64)
        self.pos_of_char[self.char_at_pos] = np.arange(N, dtype=np.int64)

    def __len__(self) -> int:
        return len(self.chars)

    def __repr__(self) -> str:
        return f"KeyboardLayout(keys='{self.key_string()}', hardware='{self.hardware.name}', name='{self.name}')"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyboardLayout):
            return NotImplemented
        return self.hardware == other.hardware and self.key_string() == other.key_string()

    def __hash__(self) -> int:
        return hash((self.hardware.name, self.key_string()))

    def __str__(self) -> str:
        '''
        Show the keyboard layout in a human-readable format. Prints a neat grid of the layout.
        '''
        HAND_SEP = ' '
        lines = []
        for row in self.hardware.rows:
            cells = []
            prev_hand = None
            for col in sorted(self.hardware.grid[row]):
                position = self.hardware.grid[row][col]
                if prev_hand is not None and position.hand != prev_hand:
                    cells.append(HAND_SEP)
                prev_hand = position.hand
                cells.append(self.chars[self.char_at_pos[self.hardware.index[position]]])
            lines.append(' '.join(cells))
        return '\n'.join(lines)

    def key_string(self) -> str:
        '''the characters in position order'''
        return ''.join(self.chars[ci] for ci in self.char_at_pos)

    def char_at(self, pi: int) -> str:
        return self.chars[self.char_at_pos[pi]]

    def position_of(self, char: str) -> Position:
        try:
            ci = self.chars.index(char)
        except ValueError:
            raise KeyError(f"Character {char!r} is not in layout {self.name}") from None
        return self.hardware.positions[self.pos_of_char[ci]]

    def mapping(self) -> dict[str, Position]:
        '''character -> position, in alphabet order'''
        return {char: self.hardware.positions[self.pos_of_char[ci]] for ci, char in enumerate(self.chars)}

    def is_bijection(self) -> bool:
        N = len(self.hardware.positions)
        return (
            self.char_at_pos.shape == (N,)
            and self.pos_of_char.shape == (N,)
            and np.array_equal(np.sort(self.char_at_pos), np.arange(N))
            and np.array_equal(self.pos_of_char[self.char_at_pos], np.arange(N))
        )

    def swap_positions(self, i: int, j: int) -> None:
        '''swap the characters at positions i and j, in place'''
        ci = self.char_at_pos[i]
        cj = self.char_at_pos[j]
        self.char_at_pos[i] = cj
        self.char_at_pos[j] = ci
        self.pos_of_char[ci] = j
        self.pos_of_char[cj] = i

    def swap_chars(self, a: str, b: str) -> None:
        for char in (a, b):
            if char not in self.chars:
                raise KeyError(f"Character {char!r} is not in layout {self.name}")
        self.swap_positions(
            int(self.pos_of_char[self.chars.index(a)]),
            int(self.pos_of_char[self.chars.index(b)]),
        )

    def copy(self, name: str | None = None) -> 'KeyboardLayout':
        return KeyboardLayout(self.hardware, self.chars, self.char_at_pos.copy(), self.name if name is None else name)

    @classmethod
    def random(
        cls,
        hardware: KeyboardHardware,
        alphabet: Sequence[str],
        rng: np.random.Generator,
        name: str = 'random',
    ) -> 'KeyboardLayout':
        '''a uniformly random assignment of the alphabet to the hardware positions'''
        chars = tuple(alphabet)
        if len(chars) != len(hardware.positions):
            raise ConfigurationError(
                f"An alphabet of {len(chars)} characters does not fit the "
                f"{len(hardware.positions)} keys of {hardware.name}"
            )
        return cls(hardware, chars, rng.permutation(len(chars)), name)

    @classmethod
    def hardware_hint(cls, name: str) -> str | None:
        text_grid = cls._read_file(name)
        return cls._hardware_hint_in_text(text_grid)

    @classmethod
    def from_name(
        cls,
        name: str,
        hardware: KeyboardHardware | None = None,
        default_hardware: KeyboardHardware | None = None
    ) -> 'KeyboardLayout':
        """
        Load a keyboard layout by name from ``layouts/``.

        hardware: specify the hardware that this layout must map to
        default_hardware: use the layout's specified hardware, but if none are specified by the layout, then use this default

        layouts are specified as a comment with a `use:` hint, e.g.
        # use: ansi_26
        """
        text_grid = cls._read_file(name)
        return cls.from_text(text_grid, name, hardware, default_hardware)

    @classmethod
    def available(cls) -> list[str]:
        return sorted(path.stem for path in LAYOUTS_DIR.glob('*.kb'))

    @classmethod
    def _read_file(cls, name: str) -> str:
        text_file_path = os.path.join(LAYOUTS_DIR, f'{name}.kb')
        try:
            with open(text_file_path, 'r', encoding='utf-8') as file:
                text_grid = file.read()
        except FileNotFoundError:
            raise ConfigurationError(f"Unknown layout '{name}', try one of: {', '.join(cls.available())}") from None
        return text_grid

    @classmethod
    def _hardware_hint_in_text(cls, text_grid: str):
        hint_re = re.compile(r'\s*#\s*use:\s*([a-z][a-z0-9_]*)')
        for line in text_grid.split('\n'):
            match = hint_re.match(line)
            if match:
                return match.group(1)
        return None

    @classmethod
    def from_text(
        cls,
        text_grid: str,
        name: str,
        hardware: KeyboardHardware | None = None,
        default_hardware: KeyboardHardware | None = None
    ) -> 'KeyboardLayout':
        """Create a keyboard layout from a text grid, one line per row and one character per column."""

        if hardware is None:
            hardware_hint = cls._hardware_hint_in_text(text_grid)
            if hardware_hint:
                hardware = KeyboardHardware.from_name(hardware_hint)
            elif default_hardware is not None:
                hardware = default_hardware
            else:
                hardware = KeyboardHardware.from_name(DEFAULT_HARDWARE)

        chars_at_position = {}
        lines = [
            line for line in text_grid.split('\n')
            if line.strip() and not line.strip().startswith('#')
        ]

        if len(lines) != len(hardware.rows):
            raise ConfigurationError(f"Expected {len(hardware.rows)} rows in text grid for {hardware.name}, got {len(lines)}")

        for row, line in zip(hardware.rows, lines):
            cols = sorted(hardware.grid[row])
            tokens = line.split()
            if len(tokens) != len(cols):
                raise ConfigurationError(
                    f"Expected {len(cols)} columns in row {row.name.lower()} of {hardware.name}, got {len(tokens)}: {line.strip()}"
                )
            for col, token in zip(cols, tokens):
                if len(token) != 1:
                    raise ConfigurationError(f"Expected a single character at row {row.name.lower()} col {col}, got '{token}'")
                chars_at_position[hardware.grid[row][col]] = token

        chars = [chars_at_position[position] for position in hardware.positions]
        if not name:
            name = ''.join(chars[:6])

        return cls(hardware, chars, name=name)


if __name__ == "__main__":

    hw = KeyboardHardware.from_name('ansi')
    for name in ['qwerty', 'dvorak', 'colemak']:
        layout = KeyboardLayout.from_name(name, hw)
        print(layout.name)
        print(str(layout))
        print()

    ## try using hints
    layout = KeyboardLayout.from_name('qwerty_26')
    print(f"{layout.name} on {layout.hardware.name}")
    print(str(layout))
