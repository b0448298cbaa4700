'''
These classes define the physical attributes of keyboard hardware
'''

import importlib
from dataclasses import dataclass
from enum import Enum, unique
from typing import Any, Iterable, List, Mapping

from errors import ConfigurationError


@unique
class Hand(Enum):
    """
    Represent the hand of a keyboard user.
    """
    LEFT = 0
    RIGHT = 1


@unique
class FingerType(Enum):
    """
    Represent the type of a finger, ordered from the outside of the hand in.
    """
    PINKY = 0
    RING = 1
    MIDDLE = 2
    INDEX = 3


@unique
class Row(Enum):
    TOP = 0
    HOME = 1
    BOTTOM = 2


@unique
class Finger(Enum):
    """
    Represent the finger of a keyboard key. Thumbs do not press optimizable keys.
    """
    LP = 0
    LR = 1
    LM = 2
    LI = 3

    RI = 4
    RM = 5
    RR = 6
    RP = 7

    @property
    def hand(self) -> Hand:
        """Return the hand that owns this finger."""
        return _HAND_OF_FINGER[self]

    @property
    def type(self) -> FingerType:
        """Return the type of the finger."""
        return _TYPE_OF_FINGER[self]

    @classmethod
    def of(cls, hand: Hand, finger_type: FingerType) -> 'Finger':
        if hand == Hand.LEFT:
            return cls(finger_type.value)
        return cls(7 - finger_type.value)


_HAND_OF_FINGER = {finger: Hand(finger.value // 4) for finger in Finger}
_TYPE_OF_FINGER = {
    finger: FingerType(finger.value) if finger.value < 4 else FingerType(7 - finger.value)
    for finger in Finger
}


@dataclass(frozen=True)
class Position:
    """
    Represent the physical and logical position of a keyboard key.

    Attributes
    ----------
    row : Row
        The row of the key (top, home or bottom).
    col : int
        The logical column index of the key, left to right.
    finger : Finger
        The finger assigned to press the key, which also fixes the hand.
    is_centre_column : bool
        True for the innermost column of each hand, where the lateral reach is greatest.
    effort : float
        Intrinsic cost of pressing this key, regardless of the keys around it.
    """
    row: Row
    col: int
    finger: Finger
    is_centre_column: bool = False
    effort: float = 0.0

    @property
    def hand(self) -> Hand:
        return self.finger.hand

    @property
    def finger_type(self) -> FingerType:
        return self.finger.type

    @property
    def is_home(self) -> bool:
        return self.row == Row.HOME

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Position):
            return NotImplemented
        return self.row == other.row and self.col == other.col

    def __hash__(self) -> int:
        return hash((self.row, self.col))


# Pair predicates shared by the penalty metrics
def same_hand(a: Position, b: Position) -> bool:
    return a.finger.hand == b.finger.hand

def same_finger(a: Position, b: Position) -> bool:
    return a.finger == b.finger

def adjacent_fingers(a: Position, b: Position) -> bool:
    return same_hand(a, b) and abs(a.finger.type.value - b.finger.type.value) == 1

def same_row(a: Position, b: Position) -> bool:
    return a.row == b.row

def is_row_jump(a: Position, b: Position) -> bool:
    '''top to bottom row or bottom to top row, skipping the home row'''
    return {a.row, b.row} == {Row.TOP, Row.BOTTOM}

def any_centre(a: Position, b: Position) -> bool:
    return a.is_centre_column or b.is_centre_column


REQUIRED_ATTRIBUTES = ('row', 'col', 'hand', 'finger')


class KeyboardHardware:
    """
    Represent the physical layout of a keyboard.

    Attributes
    ----------
    positions : List[Position]
        The positions of the keys on the keyboard, sorted by row then column.
        The index of a position in this list is its position id.
    rows : List[Row]
        The rows of the keyboard.
    finger_to_positions : Dict[Finger, List[Position]]
        The positions of the keys assigned to each finger.
    grid : Dict[Row, Dict[int, Position]]
        row -> col -> position
    """
    def __init__(self, name: str, positions: List[Position]):
        self.name = name
        self.positions = sorted(positions, key=lambda x: (x.row.value, x.col))

        seen = set()
        for position in self.positions:
            if position in seen:
                raise ConfigurationError(
                    f"Hardware {name} has a duplicate key position at row {position.row.name.lower()} col {position.col}"
                )
            seen.add(position)

        self.rows = sorted(set(position.row for position in self.positions), key=lambda r: r.value)
        self.index = {position: pi for pi, position in enumerate(self.positions)}

        self.finger_to_positions = {}
        self.grid = {}
        for position in self.positions:
            self.finger_to_positions.setdefault(position.finger, []).append(position)
            self.grid.setdefault(position.row, {})[position.col] = position

    def __len__(self) -> int:
        return len(self.positions)

    def __repr__(self) -> str:
        return f"KeyboardHardware(name='{self.name}', keys={len(self.positions)})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyboardHardware):
            return NotImplemented
        return self.name == other.name and self.positions == other.positions

    def __hash__(self) -> int:
        return hash((self.name, tuple(self.positions)))

    @classmethod
    def from_name(cls, name: str) -> 'KeyboardHardware':
        """
        Create a KeyboardHardware instance from a name.

        Parameters
        ----------
        name : str
            The name of the keyboard hardware module in the keebs directory.

        Returns
        -------
        KeyboardHardware
            The keyboard hardware instance from the specified module.
        """
        try:
            module = importlib.import_module('keebs.' + name)
        except ModuleNotFoundError as exc:
            raise ConfigurationError(f"Unknown hardware '{name}'") from exc
        try:
            return module.KEYBOARD
        except AttributeError as exc:
            raise ConfigurationError(f"Hardware module keebs.{name} does not define KEYBOARD") from exc

    @classmethod
    def from_table(cls, name: str, table: Iterable[Mapping[str, Any]]) -> 'KeyboardHardware':
        '''
        Create hardware from a static table, one mapping per key with the keys
        `row`, `col`, `hand`, `finger` (required) and `centre`, `effort` (optional).

        Enum values may be given by name, e.g. {"row": "top", "hand": "left", "finger": "index"}
        '''
        positions = []
        for i, entry in enumerate(table):
            missing = [attr for attr in REQUIRED_ATTRIBUTES if attr not in entry]
            if missing:
                raise ConfigurationError(f"Hardware {name}: key #{i} is missing {', '.join(missing)}")
            try:
                row = _enum_value(Row, entry['row'])
                hand = _enum_value(Hand, entry['hand'])
                finger_type = _enum_value(FingerType, entry['finger'])
                col = int(entry['col'])
                effort = float(entry.get('effort', 0.0))
            except (KeyError, ValueError, TypeError) as exc:
                raise ConfigurationError(f"Hardware {name}: key #{i} is malformed: {exc}") from exc

            positions.append(Position(
                row=row,
                col=col,
                finger=Finger.of(hand, finger_type),
                is_centre_column=bool(entry.get('centre', False)),
                effort=effort,
            ))
        return cls(name, positions)

    def str(self, show_finger_numbers: bool = False, show_finger_names: bool = False, show_effort: bool = False) -> str:
        '''
        Show the keyboard hardware in a human-readable format.

        Parameters
        ----------
        show_finger_numbers : bool
            Show the finger numbers.
        show_finger_names : bool
            Show the finger names.
        show_effort : bool
            Show the base effort of each key.
        '''

        def _str_position(position: Position) -> str:
            s = ''
            if show_finger_numbers:
                s += f'{position.finger.value:1d}'
            if show_finger_names:
                s += f'{position.finger.name}'
            if show_effort:
                s += f'{position.effort:g}'
            if not s:
                s = '*' if position.is_centre_column else '.'
            return s

        if not self.positions:
            return ''

        lines = []
        for row in self.rows:
            cells = []
            prev = None
            for col in sorted(self.grid[row]):
                position = self.grid[row][col]
                if prev is not None and position.hand != prev.hand:
                    cells.append('')
                cells.append(_str_position(position))
                prev = position
            lines.append(' '.join(cells))
        return '\n'.join(lines)


def _enum_value(enum_cls: type[Enum], value: Any) -> Any:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        return enum_cls[value.upper()]
    return enum_cls(value)


if __name__ == "__main__":
    for name in ['ansi', 'ansi_26']:
        keyboard = KeyboardHardware.from_name(name)
        print(f'{name}:')
        print(keyboard.str(show_finger_numbers=True))
        print()
        print(keyboard.str(show_effort=True))
        print()
