# CHIP8 machine state.
# Memory - up to 4096 bytes holding the font set at 0x000 and the ROM at 0x200.
# Stack - 16 return addresses plus a stack pointer.
# Timers - delay and sound, both count down once per frame.
# Keypad - 16 hex keys, latched once per frame from whatever the host hands us.
# Framebuffer - 64x32 pixels that are either on or off (0 || 1).

import numpy as np

from chip8_errors import MemoryOverflow, StackOverflow, StackUnderflow

FONT_ADDRESS = 0x000
PROGRAM_START = 0x200
DISPLAY_WIDTH, DISPLAY_HEIGHT = 64, 32
STACK_DEPTH = 16
KEY_COUNT = 16
GLYPH_SIZE = 5

# set fonts (binary pixel patterns)
FONTSET = bytes([
    0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
    0x20, 0x60, 0x20, 0x20, 0x70,  # 1
    0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
    0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
    0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
    0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
    0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
    0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
    0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
    0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
    0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
    0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
    0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
    0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
    0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
    0xF0, 0x80, 0xF0, 0x80, 0x80   # F
]) #notice 80 bytes


class Memory:
    """Flat byte store. Every access is bounds checked, nothing wraps."""

    def __init__(self, size=4096):
        self.size = size
        self.data = bytearray(size)

    def __len__(self):
        return self.size

    def _check(self, address, count=1):
        if address < 0 or address + count > self.size:
            # report the first address that falls outside
            bad = address if address < 0 else max(address, self.size)
            raise MemoryOverflow(bad, self.size)

    def clear(self):
        self.data[:] = bytes(self.size)

    def read(self, address):
        self._check(address)
        return self.data[address]

    def read_word(self, address):
        """Big-endian 16-bit word at address, address+1."""
        self._check(address, 2)
        return self.data[address] << 8 | self.data[address + 1]

    def read_block(self, address, count):
        self._check(address, count)
        return bytes(self.data[address:address + count])

    def write(self, address, value):
        self._check(address)
        self.data[address] = value & 0xFF

    def load(self, address, data):
        data = bytes(data)
        self._check(address, len(data))
        self.data[address:address + len(data)] = data


class CallStack:

    def __init__(self, depth=STACK_DEPTH):
        self.depth = depth
        self.slots = np.zeros(depth, dtype=np.uint16)
        self.sp = 0

    def __len__(self):
        return self.sp

    def clear(self):
        self.slots[:] = 0
        self.sp = 0

    def push(self, address):
        if self.sp >= self.depth:
            raise StackOverflow()
        self.slots[self.sp] = address
        self.sp += 1

    def pop(self):
        if self.sp == 0:
            raise StackUnderflow()
        self.sp -= 1
        return int(self.slots[self.sp])


class Timers:
    """Delay and sound counters. Consumers poll, nothing is fired on expiry."""

    def __init__(self):
        self.delay = 0
        self.sound = 0

    def clear(self):
        self.delay = 0
        self.sound = 0

    def tick(self):
        if self.delay > 0:
            self.delay -= 1
        if self.sound > 0:
            self.sound -= 1


class Keypad:
    """Pressed state of the 16 hex keys.

    Only the host writes it, through latch(). The interpreter only reads.
    """

    def __init__(self):
        self.keys = np.zeros(KEY_COUNT, dtype=np.uint8)

    def clear(self):
        self.keys[:] = 0

    def latch(self, snapshot):
        states = [1 if pressed else 0 for pressed in snapshot]
        if len(states) != KEY_COUNT:
            raise ValueError("Keypad snapshot needs %d entries, got %d" % (KEY_COUNT, len(states)))
        self.keys[:] = states

    def is_pressed(self, key):
        # keys past 0xF do not exist, so they are never down
        return 0 <= key < KEY_COUNT and bool(self.keys[key])

    def highest_pressed(self):
        """Highest-numbered key that is down, or None."""
        pressed = np.flatnonzero(self.keys)
        return int(pressed[-1]) if pressed.size else None


class Framebuffer:

    def __init__(self, width=DISPLAY_WIDTH, height=DISPLAY_HEIGHT):
        self.width = width
        self.height = height
        self._pixels = np.zeros((height, width), dtype=np.uint8)
        self.dirty = True

    @property
    def pixels(self):
        """Read-only (height, width) view of the 0/1 pixel values."""
        view = self._pixels.view()
        view.flags.writeable = False
        return view

    def clear(self):
        self._pixels[:] = 0
        self.dirty = True

    def draw_sprite(self, x, y, rows):
        """XOR sprite rows onto the surface with the top-left corner at (x, y).

        The origin wraps, but rows and columns running off the right or
        bottom edge are clipped. Returns True if any lit pixel was turned off.
        """
        x %= self.width
        y %= self.height
        collision = False
        for row, sprite in enumerate(rows):
            py = y + row
            if py >= self.height:
                break
            for col in range(8):
                px = x + col
                if px >= self.width:
                    break
                if sprite & (0x80 >> col):
                    if self._pixels[py, px]:
                        collision = True
                    self._pixels[py, px] ^= 1
        self.dirty = True
        return collision

    def to_rows(self):
        """Pixels as a list of strings, '#' for on and '.' for off. Handy in logs and tests."""
        return ["".join("#" if p else "." for p in line) for line in self._pixels]
