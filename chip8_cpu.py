# CHIP8 interpreter.
# CPU - Cowgods CHIP8 Technical reference http://devernay.free.fr/hacks/chip8/C8TECH10.HTM#0.0
# Fetch two bytes at PC, decode the nibbles, look the word up in the dispatch
# table and run its handler. Handlers return the next PC when they move it
# themselves (jumps, skips, waiting for a key), otherwise PC advances by 2.

import enum
import logging
import random
from collections import namedtuple

from chip8_config import load_config
from chip8_errors import Chip8Error, InvalidInstruction
from chip8_machine import (
    DISPLAY_HEIGHT, FONT_ADDRESS, FONTSET, GLYPH_SIZE, PROGRAM_START,
    CallStack, Framebuffer, Keypad, Memory, Timers,
)

log = logging.getLogger(__name__)

Instruction = namedtuple("Instruction", "word kind nnn nn n x y")


def decode(word):
    """Split an instruction word into its fields."""
    return Instruction(
        word=word,
        kind=(word & 0xF000) >> 12,
        nnn=word & 0x0FFF,
        nn=word & 0x00FF,
        n=word & 0x000F,
        x=(word & 0x0F00) >> 8,
        y=(word & 0x00F0) >> 4,
    )


class StepResult(namedtuple("StepResult", "pc opcode error")):
    """Outcome of one step. `error` holds the Chip8Error that halted the machine, if any."""
    __slots__ = ()

    @property
    def ok(self):
        return self.error is None


class FrameResult(namedtuple("FrameResult", "executed error framebuffer")):
    __slots__ = ()

    @property
    def ok(self):
        return self.error is None


class KeyWaitState(enum.Enum):
    IDLE = "idle"
    KEY_OBSERVED = "key_observed"
    RESOLVED = "resolved"


class KeyWait:
    """State machine behind Fx0A (wait for a key).

    IDLE -> KEY_OBSERVED once some key is down. In "release" mode it moves on
    to RESOLVED when that same key is seen up again; in "press" mode it
    resolves straight away. poll() returns the key once resolved, else None.
    """

    def __init__(self, mode="release"):
        self.mode = mode
        self.reset()

    def reset(self):
        self.state = KeyWaitState.IDLE
        self.key = None

    def poll(self, keypad):
        if self.state is KeyWaitState.RESOLVED:
            # a fresh Fx0A
            self.reset()

        if self.state is KeyWaitState.IDLE:
            key = keypad.highest_pressed()
            if key is None:
                return None
            self.state = KeyWaitState.KEY_OBSERVED
            self.key = key
            if self.mode == "release":
                return None

        if self.mode == "release" and keypad.is_pressed(self.key):
            return None

        self.state = KeyWaitState.RESOLVED
        return self.key


class Chip8:

    def __init__(self, config=None, rng=None):
        self.config = load_config(config)
        self.rng = rng if rng is not None else random.Random(self.config.seed)

        # ---- machine state ----
        self.memory = Memory(self.config.memory_size)
        self.V = [0] * 16           # V0..VF, VF doubles as carry/borrow/collision flag
        self.I = 0                  # index register (memory pointer)
        self.pc = PROGRAM_START
        self.stack = CallStack()
        self.timers = Timers()
        self.keypad = Keypad()
        self.framebuffer = Framebuffer()
        self.key_wait = KeyWait(self.config.key_wait_mode)

        self.fault = None
        self.cycles = 0

        # dispatch table: (mask, pattern, handler, mnemonic)
        self.opcodes = [
            (0xFFFF, 0x00E0, self.op_CLS, "CLS"),
            (0xFFFF, 0x00EE, self.op_RET, "RET"),

            (0xF000, 0x1000, self.op_JP, "JP 0x{nnn:03X}"),
            (0xF000, 0x2000, self.op_CALL, "CALL 0x{nnn:03X}"),
            (0xF000, 0x3000, self.op_SE_Vx_kk, "SE V{x:X}, 0x{nn:02X}"),
            (0xF000, 0x4000, self.op_SNE_Vx_kk, "SNE V{x:X}, 0x{nn:02X}"),
            (0xF00F, 0x5000, self.op_SE_Vx_Vy, "SE V{x:X}, V{y:X}"),
            (0xF000, 0x6000, self.op_LD_Vx_kk, "LD V{x:X}, 0x{nn:02X}"),
            (0xF000, 0x7000, self.op_ADD_Vx_kk, "ADD V{x:X}, 0x{nn:02X}"),

            (0xF00F, 0x8000, self.op_LD_Vx_Vy, "LD V{x:X}, V{y:X}"),
            (0xF00F, 0x8001, self.op_OR, "OR V{x:X}, V{y:X}"),
            (0xF00F, 0x8002, self.op_AND, "AND V{x:X}, V{y:X}"),
            (0xF00F, 0x8003, self.op_XOR, "XOR V{x:X}, V{y:X}"),
            (0xF00F, 0x8004, self.op_ADD, "ADD V{x:X}, V{y:X}"),
            (0xF00F, 0x8005, self.op_SUB, "SUB V{x:X}, V{y:X}"),
            (0xF00F, 0x8006, self.op_SHR, "SHR V{x:X}"),
            (0xF00F, 0x8007, self.op_SUBN, "SUBN V{x:X}, V{y:X}"),
            (0xF00F, 0x800E, self.op_SHL, "SHL V{x:X}"),

            (0xF00F, 0x9000, self.op_SNE_Vx_Vy, "SNE V{x:X}, V{y:X}"),
            (0xF000, 0xA000, self.op_LD_I, "LD I, 0x{nnn:03X}"),
            (0xF000, 0xB000, self.op_JP_V0, "JP V0, 0x{nnn:03X}"),
            (0xF000, 0xC000, self.op_RND, "RND V{x:X}, 0x{nn:02X}"),
            (0xF000, 0xD000, self.op_DRW, "DRW V{x:X}, V{y:X}, {n}"),

            (0xF0FF, 0xE09E, self.op_SKP, "SKP V{x:X}"),
            (0xF0FF, 0xE0A1, self.op_SKNP, "SKNP V{x:X}"),

            (0xF0FF, 0xF007, self.op_LD_Vx_DT, "LD V{x:X}, DT"),
            (0xF0FF, 0xF00A, self.op_WAITKEY, "LD V{x:X}, K"),
            (0xF0FF, 0xF015, self.op_LD_DT_Vx, "LD DT, V{x:X}"),
            (0xF0FF, 0xF018, self.op_LD_ST_Vx, "LD ST, V{x:X}"),
            (0xF0FF, 0xF01E, self.op_ADD_I_Vx, "ADD I, V{x:X}"),
            (0xF0FF, 0xF029, self.op_FONT, "LD F, V{x:X}"),
            (0xF0FF, 0xF033, self.op_BCD, "LD B, V{x:X}"),
            (0xF0FF, 0xF055, self.op_STORE, "LD [I], V{x:X}"),
            (0xF0FF, 0xF065, self.op_LOAD, "LD V{x:X}, [I]"),
        ]

    # ---- Load ROM ----
    def initialize(self, rom):
        """Reset the whole machine, load the font set and copy `rom` to 0x200.

        Raises MemoryOverflow if the ROM does not fit; nothing is truncated.
        """
        rom = bytes(rom)
        self.memory.clear()
        self.V = [0] * 16
        self.I = 0
        self.stack.clear()
        self.timers.clear()
        self.keypad.clear()
        self.framebuffer.clear()
        self.key_wait.reset()
        self.fault = None
        self.cycles = 0

        self.memory.load(FONT_ADDRESS, FONTSET)
        self.memory.load(PROGRAM_START, rom)
        self.pc = PROGRAM_START
        log.info("Loaded ROM: %d bytes at 0x%03X", len(rom), PROGRAM_START)

    @property
    def halted(self):
        return self.fault is not None

    def lookup(self, word):
        for mask, pattern, handler, mnemonic in self.opcodes:
            if (word & mask) == pattern:
                return handler, mnemonic
        return None, None

    def disassemble(self, word):
        _, mnemonic = self.lookup(word)
        if mnemonic is None:
            return "??? %04X" % word
        return mnemonic.format(**decode(word)._asdict())

    # ---- Cycle ----
    def step(self):
        """Fetch, decode and execute one instruction.

        Faults are returned in the StepResult, not raised. A faulted machine
        stays halted until initialize() is called again.
        """
        if self.fault is not None:
            return StepResult(self.fault.pc, None, self.fault)

        pc = self.pc
        word = None
        try:
            word = self.memory.read_word(pc)
            handler, mnemonic = self.lookup(word)
            if handler is None:
                raise InvalidInstruction(word, pc)
            op = decode(word)
            if log.isEnabledFor(logging.DEBUG):
                log.debug("%03X: %04X  %s", pc, word, mnemonic.format(**op._asdict()))
            next_pc = handler(op)
        except Chip8Error as e:
            if e.pc is None:
                e.pc = pc
            self.fault = e
            log.error("Halted: %s", e)
            return StepResult(pc, word, e)

        self.pc = pc + 2 if next_pc is None else next_pc
        self.cycles += 1
        return StepResult(pc, word, None)

    def tick_timers(self):
        self.timers.tick()

    def run_frame(self, keys=None):
        """One frame tick: latch the host's key snapshot, run a burst of
        instructions_per_frame steps, then tick both timers once.
        """
        if keys is not None:
            self.keypad.latch(keys)

        executed = 0
        for _ in range(self.config.instructions_per_frame):
            result = self.step()
            if not result.ok:
                return FrameResult(executed, result.error, self.framebuffer)
            executed += 1

        self.tick_timers()
        return FrameResult(executed, None, self.framebuffer)

    # ---- Opcode handlers ----

    # 00E0 - Clear the display
    def op_CLS(self, op):
        self.framebuffer.clear()

    # 00EE - Return from subroutine, resuming after the CALL that got us here
    def op_RET(self, op):
        return self.stack.pop() + 2

    # 1nnn - Jump to address NNN
    def op_JP(self, op):
        return op.nnn

    # 2nnn - Call subroutine at NNN
    def op_CALL(self, op):
        self.stack.push(self.pc)
        return op.nnn

    # 3xkk - Skip next instruction if Vx == kk
    def op_SE_Vx_kk(self, op):
        if self.V[op.x] == op.nn:
            return self.pc + 4

    # 4xkk - Skip next instruction if Vx != kk
    def op_SNE_Vx_kk(self, op):
        if self.V[op.x] != op.nn:
            return self.pc + 4

    # 5xy0 - Skip next instruction if Vx == Vy
    def op_SE_Vx_Vy(self, op):
        if self.V[op.x] == self.V[op.y]:
            return self.pc + 4

    def op_LD_Vx_kk(self, op):
        self.V[op.x] = op.nn

    def op_ADD_Vx_kk(self, op):
        self.V[op.x] = (self.V[op.x] + op.nn) & 0xFF

    # 8xy0..8xyE - the flag is written first, so with x == F the result wins
    def op_LD_Vx_Vy(self, op):
        self.V[op.x] = self.V[op.y]

    def op_OR(self, op):
        self.V[op.x] |= self.V[op.y]

    def op_AND(self, op):
        self.V[op.x] &= self.V[op.y]

    def op_XOR(self, op):
        self.V[op.x] ^= self.V[op.y]

    def op_ADD(self, op):
        total = self.V[op.x] + self.V[op.y]
        self.V[0xF] = 1 if total > 0xFF else 0
        self.V[op.x] = total & 0xFF

    def op_SUB(self, op):
        vx, vy = self.V[op.x], self.V[op.y]
        self.V[0xF] = 1 if vx > vy else 0
        self.V[op.x] = (vx - vy) & 0xFF

    def op_SHR(self, op):
        vx = self.V[op.x]
        self.V[0xF] = vx & 1
        self.V[op.x] = vx >> 1

    def op_SUBN(self, op):
        vx, vy = self.V[op.x], self.V[op.y]
        self.V[0xF] = 1 if vy > vx else 0
        self.V[op.x] = (vy - vx) & 0xFF

    def op_SHL(self, op):
        vx = self.V[op.x]
        self.V[0xF] = (vx >> 7) & 1
        self.V[op.x] = (vx << 1) & 0xFF

    # 9xy0 - Skip next instruction if Vx != Vy
    def op_SNE_Vx_Vy(self, op):
        if self.V[op.x] != self.V[op.y]:
            return self.pc + 4

    def op_LD_I(self, op):
        self.I = op.nnn

    # Bnnn - Jump to address NNN + V0
    def op_JP_V0(self, op):
        return self.V[0] + op.nnn

    def op_RND(self, op):
        self.V[op.x] = self.rng.getrandbits(8) & op.nn

    # Dxyn - Draw n sprite rows from [I] at (Vx, Vy), VF = collision
    def op_DRW(self, op):
        self.V[0xF] = 0
        # rows below the bottom edge are clipped, so they are never read
        visible = min(op.n, DISPLAY_HEIGHT - self.V[op.y] % DISPLAY_HEIGHT)
        rows = self.memory.read_block(self.I, visible)
        if self.framebuffer.draw_sprite(self.V[op.x], self.V[op.y], rows):
            self.V[0xF] = 1

    # Ex9E / ExA1 - Skip next instruction if key Vx is / is not pressed
    def op_SKP(self, op):
        if self.keypad.is_pressed(self.V[op.x]):
            return self.pc + 4

    def op_SKNP(self, op):
        if not self.keypad.is_pressed(self.V[op.x]):
            return self.pc + 4

    def op_LD_Vx_DT(self, op):
        self.V[op.x] = self.timers.delay

    # Fx0A - stall on this instruction until the key wait resolves
    def op_WAITKEY(self, op):
        key = self.key_wait.poll(self.keypad)
        if key is None:
            return self.pc
        self.V[op.x] = key

    def op_LD_DT_Vx(self, op):
        self.timers.delay = self.V[op.x]

    # Fx18 - with sound_timer_operand "n" the low nibble picks the register (always V8)
    def op_LD_ST_Vx(self, op):
        source = op.n if self.config.sound_timer_operand == "n" else op.x
        self.timers.sound = self.V[source]

    # Fx1E - VF flags a result past 0xFFF but I keeps the full sum
    def op_ADD_I_Vx(self, op):
        total = self.I + self.V[op.x]
        self.V[0xF] = 1 if total > 0xFFF else 0
        self.I = total & 0xFFFF

    def op_FONT(self, op):
        self.I = FONT_ADDRESS + self.V[op.x] * GLYPH_SIZE

    def op_BCD(self, op):
        v = self.V[op.x]
        self.memory.load(self.I, (v // 100, (v // 10) % 10, v % 10))

    # Fx55 / Fx65 - I is left pointing past the last register moved
    def op_STORE(self, op):
        self.memory.load(self.I, self.V[:op.x + 1])
        self.I += op.x + 1

    def op_LOAD(self, op):
        self.V[:op.x + 1] = self.memory.read_block(self.I, op.x + 1)
        self.I += op.x + 1
