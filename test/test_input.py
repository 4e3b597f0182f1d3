from chip8_input import LAYOUT, KeyboardInput


def test_default_layout_covers_every_key():
    assert sorted(LAYOUT.values()) == list(range(16))


def test_press_and_release():
    keyboard = KeyboardInput()
    assert keyboard.press("x")
    assert keyboard.press("v")
    snap = keyboard.snapshot()
    assert snap[0x0] == 1
    assert snap[0xF] == 1
    assert sum(snap) == 2

    keyboard.release("x")
    assert keyboard.snapshot()[0x0] == 0


def test_unmapped_symbols_are_ignored():
    keyboard = KeyboardInput({65: 0xA})
    assert not keyboard.press(66)
    assert keyboard.press(65)
    assert keyboard.snapshot()[0xA] == 1


def test_snapshot_is_a_copy():
    keyboard = KeyboardInput()
    snap = keyboard.snapshot()
    keyboard.press("1")
    assert snap[0x1] == 0
    keyboard.release_all()
    assert sum(keyboard.snapshot()) == 0
