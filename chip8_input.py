# Input - store key states as the host reports them, and hand the interpreter
# a 16-entry snapshot once per frame.
#
#   1 2 3 4        1 2 3 C
#   Q W E R   ->   4 5 6 D
#   A S D F        7 8 9 E
#   Z X C V        A 0 B F

# physical key name -> CHIP8 key
LAYOUT = {
    "1": 0x1, "2": 0x2, "3": 0x3, "4": 0xC,
    "q": 0x4, "w": 0x5, "e": 0x6, "r": 0xD,
    "a": 0x7, "s": 0x8, "d": 0x9, "f": 0xE,
    "z": 0xA, "x": 0x0, "c": 0xB, "v": 0xF,
}


class KeyboardInput:
    """Host side key state.

    `keymap` maps whatever symbols the host's event loop produces to hex keys.
    Symbols that are not in the map are ignored.
    """

    def __init__(self, keymap=None):
        self.keymap = dict(LAYOUT if keymap is None else keymap)
        self.keys = [0] * 16

    def press(self, symbol):
        if symbol in self.keymap:
            self.keys[self.keymap[symbol]] = 1
            return True
        return False

    def release(self, symbol):
        if symbol in self.keymap:
            self.keys[self.keymap[symbol]] = 0
            return True
        return False

    def release_all(self):
        self.keys = [0] * 16

    def snapshot(self):
        return tuple(self.keys)
