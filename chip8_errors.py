# CHIP8 faults.
# Everything that stops a running program is a Chip8Error. Handlers raise them,
# Chip8.step() catches them and hands them back to the host as a value.


class Chip8Error(Exception):
    """Base class for every fault the interpreter can report."""

    def __init__(self, message, pc=None):
        super().__init__(message)
        self.pc = pc


class InvalidInstruction(Chip8Error):

    def __init__(self, opcode, pc):
        super().__init__("Invalid instruction %04X at %03X" % (opcode, pc), pc)
        self.opcode = opcode


class MemoryOverflow(Chip8Error):

    def __init__(self, address, size, pc=None):
        super().__init__("Address 0x%X outside memory (size 0x%X)" % (address, size), pc)
        self.address = address
        self.size = size


class StackOverflow(Chip8Error):

    def __init__(self, pc=None):
        super().__init__("Stack overflow on CALL", pc)


class StackUnderflow(Chip8Error):

    def __init__(self, pc=None):
        super().__init__("Stack underflow on RET", pc)
