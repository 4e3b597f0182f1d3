import pytest

from chip8_config import DEFAULTS, Chip8Config, ConfigError, load_config


def test_defaults():
    cfg = load_config()
    assert cfg.instructions_per_frame == 10
    assert cfg.memory_size == 4096
    assert cfg.sound_timer_operand == "x"
    assert cfg.key_wait_mode == "release"
    assert cfg.frame_interval == pytest.approx(1 / 60)
    assert cfg.to_dict() == DEFAULTS


def test_dict_overlay_normalizes_types():
    cfg = load_config({"instructions_per_frame": "20", "key_wait_mode": "PRESS"})
    assert cfg.instructions_per_frame == 20
    assert cfg.key_wait_mode == "press"
    assert cfg.memory_size == 4096


def test_config_object_is_revalidated():
    with pytest.raises(ConfigError):
        load_config(Chip8Config(instructions_per_frame=0))


def test_yaml_file(tmp_path):
    path = tmp_path / "chip8.yaml"
    path.write_text("instructions_per_frame: 15\nframe_interval_ms: 20\nsound_timer_operand: n\n")
    cfg = load_config(str(path))
    assert cfg.instructions_per_frame == 15
    assert cfg.frame_interval == pytest.approx(0.02)
    assert cfg.sound_timer_operand == "n"


def test_yaml_must_be_mapping(tmp_path):
    path = tmp_path / "chip8.yaml"
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ConfigError):
        load_config(path)


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "nope.yaml")


@pytest.mark.parametrize("data", [
    {"speed": 10},
    {"instructions_per_frame": 0},
    {"instructions_per_frame": "fast"},
    {"frame_interval_ms": 0},
    {"memory_size": 0x100},
    {"memory_size": 0x10001},
    {"sound_timer_operand": "y"},
    {"key_wait_mode": "edge"},
    {"scale": 0},
])
def test_invalid_values(data):
    with pytest.raises(ConfigError):
        load_config(data)
