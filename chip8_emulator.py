# CHIP8 host window.
# Output - the interpreter's 64x32 framebuffer, upscaled with numpy and blitted by pyglet.
# Input - pyglet key events feed a KeyboardInput; its snapshot goes into every frame.
# Frame cadence - pyglet's clock calls run_frame() every frame_interval_ms.
#----------------------------------------------------------------------------------------------
# The interpreter never sees pyglet. We subclass pyglet's Window here and
# override whatever def we need from there.

import argparse
import logging
import sys

import numpy as np
import pyglet
from pyglet.window import key

from chip8_config import ConfigError, load_config
from chip8_cpu import Chip8
from chip8_errors import Chip8Error
from chip8_input import LAYOUT, KeyboardInput
from chip8_machine import DISPLAY_HEIGHT, DISPLAY_WIDTH

log = logging.getLogger(__name__)


def pyglet_keymap(layout=LAYOUT):
    """Turn key names ("1", "q", ...) into pyglet key symbols."""
    return {
        getattr(key, name.upper() if name.isalpha() else "_" + name): hexkey
        for name, hexkey in layout.items()
    }


def render_rgba(pixels, scale):
    """0/1 pixel grid -> upscaled RGBA bytes, bottom row first as pyglet expects."""
    lit = np.flipud(pixels).astype(np.uint8) * 255
    rgba = np.empty(lit.shape + (4,), dtype=np.uint8)
    rgba[..., 0] = lit
    rgba[..., 1] = lit
    rgba[..., 2] = lit
    rgba[..., 3] = 255
    if scale != 1:
        rgba = np.repeat(np.repeat(rgba, scale, axis=0), scale, axis=1)
    return rgba.tobytes()


class Chip8Window(pyglet.window.Window):

    def __init__(self, machine):
        self.machine = machine
        self.scale = machine.config.scale
        window_width = DISPLAY_WIDTH * self.scale
        window_height = DISPLAY_HEIGHT * self.scale
        super().__init__(
            width=window_width,
            height=window_height,
            caption="CHIP-8 Emulator",
            vsync=False
        )

        self.input = KeyboardInput(pyglet_keymap())

        #creating ImageData once, contents replaced on every redraw
        self.image = pyglet.image.ImageData(
            window_width,
            window_height,
            'RGBA',
            render_rgba(machine.framebuffer.pixels, self.scale)
        )

        # Labels for HUD
        self.fps_label = pyglet.text.Label(
            "FPS: 0",
            font_size=12,
            x=5,
            y=window_height - 15,
            anchor_x='left',
            anchor_y='center',
            color=(255, 0, 0, 255)
        )
        self.cps_label = pyglet.text.Label(
            "Cycles/s: 0",
            font_size=12,
            x=5,
            y=window_height - 30,
            anchor_x='left',
            anchor_y='center',
            color=(255, 0, 0, 255)
        )

        # Performance tracking counters
        self._fps_counter = 0
        self._cycles_at_bench = machine.cycles

        pyglet.clock.schedule_interval(self.frame, machine.config.frame_interval)
        pyglet.clock.schedule_interval(self._update_bench, 1.0)

    # ---- frame tick ----
    def frame(self, dt):
        result = self.machine.run_frame(self.input.snapshot())
        if not result.ok:
            self.halt(result.error)

    def halt(self, error):
        log.error("Emulation stopped: %s", error)
        pyglet.clock.unschedule(self.frame)
        self.set_caption("CHIP-8 Emulator - halted: %s" % error)

    # FPS / CPS
    def _update_bench(self, dt):
        cycles = self.machine.cycles
        self.fps_label.text = f"FPS: {self._fps_counter / dt:.1f}"
        self.cps_label.text = f"Cycles/s: {(cycles - self._cycles_at_bench) / dt:.0f}"
        self._fps_counter = 0
        self._cycles_at_bench = cycles

    # ---- Drawing ----
    def on_draw(self):
        framebuffer = self.machine.framebuffer
        if framebuffer.dirty:
            self.image.set_data('RGBA', self.width * 4, render_rgba(framebuffer.pixels, self.scale))
            framebuffer.dirty = False

        self.clear()
        self.image.blit(0, 0)
        self.fps_label.draw()
        self.cps_label.draw()
        self._fps_counter += 1

    # ---- Input ----
    def on_key_press(self, symbol, modifiers):
        if symbol == key.ESCAPE:
            self.close()
        elif symbol == key.F1:
            toggle_debug()
        else:
            self.input.press(symbol)

    def on_key_release(self, symbol, modifiers):
        self.input.release(symbol)

    def on_deactivate(self):
        # key-up events are lost while unfocused
        self.input.release_all()


def toggle_debug():
    root = logging.getLogger()
    root.setLevel(logging.WARNING if root.level == logging.DEBUG else logging.DEBUG)
    log.warning("Debug trace %s", "on" if root.level == logging.DEBUG else "off")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="chip8", description="CHIP-8 interpreter")
    parser.add_argument("rom", help="ROM file, loaded unmodified at 0x200")
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("--speed", type=int, dest="instructions_per_frame",
                        help="instructions executed per frame")
    parser.add_argument("--fps", type=float, help="frames (timer ticks) per second")
    parser.add_argument("--scale", type=int, help="window pixels per CHIP-8 pixel")
    parser.add_argument("--sound-operand", choices=("x", "n"), dest="sound_timer_operand",
                        help="register Fx18 reads: Vx, or the low nibble register")
    parser.add_argument("--key-wait", choices=("release", "press"), dest="key_wait_mode",
                        help="Fx0A resumes on key release or on key press")
    parser.add_argument("--seed", type=int, help="seed for RND")
    parser.add_argument("--debug", action="store_true", help="trace every instruction")
    return parser.parse_args(argv)


def build_config(args):
    cfg = load_config(args.config)
    overrides = {
        name: getattr(args, name)
        for name in ("instructions_per_frame", "scale", "sound_timer_operand", "key_wait_mode", "seed")
        if getattr(args, name) is not None
    }
    if args.fps is not None:
        if args.fps <= 0:
            raise ConfigError("fps must be positive")
        overrides["frame_interval_ms"] = 1000.0 / args.fps
    data = cfg.to_dict()
    data.update(overrides)
    return load_config(data)


# ---- Entry point ----
def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = build_config(args)
    except ConfigError as e:
        log.error("%s", e)
        return 1

    log.info("Loading ROM: %s", args.rom)
    try:
        with open(args.rom, "rb") as f:
            rom = f.read()
    except OSError as e:
        log.error("Cannot read ROM: %s", e)
        return 1

    machine = Chip8(config)
    try:
        machine.initialize(rom)
    except Chip8Error as e:
        log.error("%s", e)
        return 1

    Chip8Window(machine)
    pyglet.app.run()
    return 1 if machine.halted else 0


if __name__ == "__main__":
    sys.exit(main())
