r'''
The 26 letter keys of a QWERTY keyboard on ANSI hardware, without ; , . /

 q w e r t   y u i o p
 a s d f g   h j k l
 z x c v b   n m

This is the smallest geometry that holds the latin alphabet, useful for letter-only corpora.
'''

from hardware import Row
from keebs.ansi import standard_hardware

KEYBOARD = standard_hardware('ansi_26', cols_at_row={
    Row.TOP: range(10),
    Row.HOME: range(9),
    Row.BOTTOM: range(7),
})

if __name__ == "__main__":
    print(KEYBOARD.str(show_finger_numbers=True))
