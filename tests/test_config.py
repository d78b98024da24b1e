from __future__ import annotations

import os
from pathlib import Path

import pytest

from segment_digits.config import Settings


def _load_with_env(env: dict[str, str]) -> Settings:
    # Swap the whole environment for the duration of Settings.load
    old = os.environ.copy()
    try:
        os.environ.clear()
        for k, v in env.items():
            os.environ[k] = v
        return Settings.load()
    finally:
        os.environ.clear()
        for k, v in old.items():
            os.environ[k] = v


def test_defaults_without_env_or_file(tmp_path: Path) -> None:
    s = _load_with_env({"SEGMENT_DIGITS_CONFIG": (tmp_path / "missing.toml").as_posix()})
    assert s == Settings.defaults()
    assert s.training.hidden_layers == (16,)
    assert s.training.passes == 1000
    assert s.models.active_model == "segments_dense_v1"


def test_env_overrides(tmp_path: Path) -> None:
    env = {
        "SEGMENT_DIGITS_CONFIG": (tmp_path / "missing.toml").as_posix(),
        "APP__THREADS": "2",
        "APP__PORT": "9000",
        "TRAINING__HIDDEN_LAYERS": "16, 8",
        "TRAINING__PASSES": "50",
        "TRAINING__LEARNING_RATE": "0.01",
        "TRAINING__OPTIMIZER": "SGD",
        "MODELS__MODEL_DIR": (tmp_path / "models").as_posix(),
        "MODELS__KEEP_RUNS": "5",
        "RENDER__ACTIVE_FILL": "#00ff00",
    }
    s = _load_with_env(env)
    assert s.app.threads == 2
    assert s.app.port == 9000
    assert s.training.hidden_layers == (16, 8)
    assert s.training.passes == 50
    assert abs(s.training.learning_rate - 0.01) < 1e-12
    assert s.training.optimizer == "sgd"
    assert s.models.model_dir.as_posix().endswith("models")
    assert s.models.keep_runs == 5
    assert s.render.active_fill == "#00ff00"


def test_blank_hidden_layers_env_means_direct_model(tmp_path: Path) -> None:
    env = {
        "SEGMENT_DIGITS_CONFIG": (tmp_path / "missing.toml").as_posix(),
        "TRAINING__HIDDEN_LAYERS": "",
    }
    assert _load_with_env(env).training.hidden_layers == ()


def test_toml_overrides_env(tmp_path: Path) -> None:
    p = tmp_path / "cfg.toml"
    p.write_text(
        """
[app]
port = 8123

[training]
hidden_layers = [32, 16]
epochs = 20
optimizer = "AdamW"

[models]
active_model = "from_toml"

[render]
stroke = "#222222"
""".strip(),
        encoding="utf-8",
    )
    env = {"SEGMENT_DIGITS_CONFIG": p.as_posix(), "TRAINING__PASSES": "5"}
    s = _load_with_env(env)
    assert s.app.port == 8123
    assert s.training.hidden_layers == (32, 16)
    assert s.training.passes == 20
    assert s.training.optimizer == "adamw"
    assert s.models.active_model == "from_toml"
    assert s.render.stroke == "#222222"


def test_app_port_out_of_range_raises(tmp_path: Path) -> None:
    env = {
        "SEGMENT_DIGITS_CONFIG": (tmp_path / "missing.toml").as_posix(),
        "APP__PORT": "70000",
    }
    with pytest.raises(RuntimeError):
        _load_with_env(env)


def test_invalid_toml_raises(tmp_path: Path) -> None:
    p = tmp_path / "bad.toml"
    p.write_text("[training\npasses = ", encoding="utf-8")
    with pytest.raises(RuntimeError):
        _load_with_env({"SEGMENT_DIGITS_CONFIG": p.as_posix()})


def test_to_options_round_trips_into_train_options() -> None:
    from segment_digits.training.train_config import resolve_options

    opts = resolve_options(Settings.defaults().training.to_options())
    assert opts.passes == 1000
    assert opts.optimizer == "adam"
