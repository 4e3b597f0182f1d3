"""Host side helpers: rendering, key mapping and CLI config. No window is opened."""

import os

import numpy as np
import pytest

os.environ.setdefault("PYGLET_HEADLESS", "1")
pyglet = pytest.importorskip("pyglet")
pyglet.options["headless"] = True

from pyglet.window import key  # noqa: E402

from chip8_config import ConfigError  # noqa: E402
from chip8_emulator import build_config, parse_args, pyglet_keymap, render_rgba  # noqa: E402


def lit_corner():
    pixels = np.zeros((32, 64), dtype=np.uint8)
    pixels[0, 0] = 1
    return pixels


@pytest.mark.parametrize("scale", [1, 2, 10])
def test_render_size(scale):
    data = render_rgba(lit_corner(), scale)
    assert len(data) == 64 * scale * 32 * scale * 4


def test_render_flips_rows_for_pyglet():
    scale = 2
    rgba = np.frombuffer(render_rgba(lit_corner(), scale), dtype=np.uint8).reshape(64, 128, 4)
    # the top-left pixel lands in the last buffer rows, pyglet's origin is bottom-left
    assert rgba[-1, 0].tolist() == [255, 255, 255, 255]
    assert rgba[-2, 1].tolist() == [255, 255, 255, 255]
    assert rgba[-3, 0].tolist() == [0, 0, 0, 255]
    assert rgba[0, 0].tolist() == [0, 0, 0, 255]
    assert rgba[-1, 2].tolist() == [0, 0, 0, 255]


def test_render_accepts_read_only_view():
    from chip8_machine import Framebuffer

    fb = Framebuffer()
    fb.draw_sprite(0, 31, b"\x80")
    rgba = np.frombuffer(render_rgba(fb.pixels, 1), dtype=np.uint8).reshape(32, 64, 4)
    assert rgba[0, 0, 0] == 255
    assert rgba[..., 0].sum() == 255


def test_pyglet_keymap_covers_keypad():
    keymap = pyglet_keymap()
    assert sorted(keymap.values()) == list(range(16))
    assert keymap[key.X] == 0x0
    assert keymap[key._4] == 0xC
    assert keymap[key.V] == 0xF


def test_fps_becomes_frame_interval():
    cfg = build_config(parse_args(["rom.ch8", "--fps", "30", "--speed", "7"]))
    assert cfg.instructions_per_frame == 7
    assert cfg.frame_interval_ms == pytest.approx(1000 / 30)


def test_cli_flags_win_over_config_file(tmp_path):
    path = tmp_path / "chip8.yaml"
    path.write_text("instructions_per_frame: 15\nkey_wait_mode: press\nscale: 4\n")

    cfg = build_config(parse_args(["rom.ch8", "--config", str(path), "--speed", "3",
                                   "--key-wait", "release"]))
    assert cfg.instructions_per_frame == 3
    assert cfg.key_wait_mode == "release"
    assert cfg.scale == 4


def test_config_file_alone(tmp_path):
    path = tmp_path / "chip8.yaml"
    path.write_text("sound_timer_operand: n\n")
    cfg = build_config(parse_args(["rom.ch8", "--config", str(path)]))
    assert cfg.sound_timer_operand == "n"
    assert cfg.instructions_per_frame == 10


@pytest.mark.parametrize("argv", [["rom.ch8", "--fps", "0"], ["rom.ch8", "--speed", "0"]])
def test_bad_cli_values(argv):
    with pytest.raises(ConfigError):
        build_config(parse_args(argv))
