"""Shared fixtures for the interpreter tests."""

import pytest

from chip8_cpu import Chip8


def program(*words):
    """Instruction words -> ROM bytes, big-endian."""
    return b"".join(w.to_bytes(2, "big") for w in words)


class FixedRandom:
    """Stands in for random.Random so RND results are predictable."""

    def __init__(self, value):
        self.value = value

    def getrandbits(self, bits):
        return self.value & ((1 << bits) - 1)


@pytest.fixture
def machine():
    """Factory: machine(*words, **config) -> initialized Chip8."""

    def build(*words, rng=None, **config):
        m = Chip8(config or None, rng=rng)
        m.initialize(program(*words))
        return m

    return build


def run(m, steps):
    """Run `steps` instructions, failing the test on the first fault."""
    for _ in range(steps):
        result = m.step()
        assert result.ok, result.error
    return m
