r'''
Standard ANSI hardware, 30 keys in 3 rows of 10 columns (the letter block plus ; , . /).

finger numbers:
 0 1 2 3 3   4 4 5 6 7
 0 1 2 3 3   4 4 5 6 7
 0 1 2 3 3   4 4 5 6 7

base effort per key, the innermost columns (4 and 5) are the centre columns:
 3   1   1   1   3     3   1   1   1   3
 0.5 0.5 0   0   1     1   0   0   0.5 0.5
 3   2.5 2   2   3     3   2   2   2.5 3
'''

from hardware import Finger, KeyboardHardware, Position, Row

finger_at_col = {
    0: Finger.LP,
    1: Finger.LR,
    2: Finger.LM,
    3: Finger.LI,
    4: Finger.LI,
    5: Finger.RI,
    6: Finger.RI,
    7: Finger.RM,
    8: Finger.RR,
    9: Finger.RP,
}

centre_cols = {4, 5}

effort_at_row = {
    Row.TOP:    [3.0, 1.0, 1.0, 1.0, 3.0,   3.0, 1.0, 1.0, 1.0, 3.0],
    Row.HOME:   [0.5, 0.5, 0.0, 0.0, 1.0,   1.0, 0.0, 0.0, 0.5, 0.5],
    Row.BOTTOM: [3.0, 2.5, 2.0, 2.0, 3.0,   3.0, 2.0, 2.0, 2.5, 3.0],
}

standard_cols = {row: range(10) for row in Row}

def standard_hardware(name, cols_at_row = standard_cols):
    '''Creates KeyboardHardware with the standard key positions arranged in 3 rows,
    keeping only the columns listed for each row.
    '''
    return KeyboardHardware(name=name, positions=[
        Position(
            row=row,
            col=col,
            finger=finger_at_col[col],
            is_centre_column=col in centre_cols,
            effort=effort_at_row[row][col],
        )
        for row in Row
        for col in cols_at_row[row]
    ])

# export the standard ansi keyboard
KEYBOARD = standard_hardware('ansi')

if __name__ == "__main__":
    print(KEYBOARD.str(show_finger_numbers=True))
