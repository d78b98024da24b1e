from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Final

_DEFAULT_CONFIG_PATH: Final[Path] = Path("config/segment_digits.toml")


@dataclass(frozen=True)
class AppConfig:
    threads: int = 0
    port: int = 8081


@dataclass(frozen=True)
class TrainingConfig:
    hidden_layers: tuple[int, ...] = (16,)
    passes: int = 1000
    batch_size: int = 1
    learning_rate: float = 1e-3
    optimizer: str = "adam"
    backend: str = "cpu"
    seed: int = 42

    def to_options(self) -> dict[str, object]:
        """Override mapping accepted by ``training.driver.train``."""
        return {
            "passes": self.passes,
            "batch_size": self.batch_size,
            "learning_rate": self.learning_rate,
            "optimizer": self.optimizer,
            "backend": self.backend,
            "seed": self.seed,
        }


@dataclass(frozen=True)
class ModelsConfig:
    model_dir: Path = Path("./artifacts/segments/models")
    active_model: str = "segments_dense_v1"
    keep_runs: int = 3


@dataclass(frozen=True)
class RenderConfig:
    active_fill: str = "#ff2a2a"
    inactive_fill: str = "#f2f2f2"
    stroke: str = "#444444"


@dataclass(frozen=True)
class Settings:
    app: AppConfig
    training: TrainingConfig
    models: ModelsConfig
    render: RenderConfig

    @staticmethod
    def _toml_path() -> Path:
        env_val = os.getenv("SEGMENT_DIGITS_CONFIG")
        if env_val:
            return Path(env_val)
        return _DEFAULT_CONFIG_PATH

    @classmethod
    def defaults(cls) -> Settings:
        return cls(
            app=AppConfig(), training=TrainingConfig(), models=ModelsConfig(), render=RenderConfig()
        )

    @classmethod
    def load(cls) -> Settings:
        # Env first, then TOML overrides when the file exists.
        base = cls(
            app=_load_app_from_env(),
            training=_load_training_from_env(),
            models=_load_models_from_env(),
            render=_load_render_from_env(),
        )
        cfg_path = cls._toml_path()
        if not cfg_path.exists():
            return base
        try:
            raw: object = tomllib.loads(cfg_path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise RuntimeError(f"Failed to read config TOML: {cfg_path}") from exc
        except tomllib.TOMLDecodeError as exc:
            raise RuntimeError(f"Invalid TOML config: {cfg_path}") from exc
        training_in = {
            ("passes" if k == "epochs" else k): v
            for k, v in _toml_table(raw, "training").items()
        }
        return cls(
            app=_merge_app(base.app, _toml_table(raw, "app")),
            training=_merge_training(base.training, training_in),
            models=_merge_models(base.models, _toml_table(raw, "models")),
            render=_merge_render(base.render, _toml_table(raw, "render")),
        )


def _parse_port(raw: str) -> int:
    p = int(raw)
    if not (1 <= p <= 65535):
        raise RuntimeError("port out of range")
    return p


def parse_layers(raw: str) -> tuple[int, ...]:
    # "16,8" -> (16, 8); blank -> no hidden layers
    parts = [p.strip() for p in raw.split(",")]
    return tuple(int(p) for p in parts if p)


def _load_app_from_env() -> AppConfig:
    a = AppConfig()
    th = os.getenv("APP__THREADS")
    pt = os.getenv("APP__PORT")
    if th is not None and th.isdigit():
        a = replace(a, threads=int(th))
    if pt is not None and pt.isdigit():
        a = replace(a, port=_parse_port(pt))
    return a


def _load_training_from_env() -> TrainingConfig:
    t = TrainingConfig()
    hl = os.getenv("TRAINING__HIDDEN_LAYERS")
    ps = os.getenv("TRAINING__PASSES")
    bs = os.getenv("TRAINING__BATCH_SIZE")
    lr = os.getenv("TRAINING__LEARNING_RATE")
    op = os.getenv("TRAINING__OPTIMIZER")
    be = os.getenv("TRAINING__BACKEND")
    sd = os.getenv("TRAINING__SEED")
    if hl is not None:
        t = replace(t, hidden_layers=parse_layers(hl))
    if ps is not None:
        t = replace(t, passes=int(ps))
    if bs is not None:
        t = replace(t, batch_size=int(bs))
    if lr is not None:
        t = replace(t, learning_rate=float(lr))
    if op:
        t = replace(t, optimizer=op.strip().lower())
    if be:
        t = replace(t, backend=be.strip())
    if sd is not None:
        t = replace(t, seed=int(sd))
    return t


def _load_models_from_env() -> ModelsConfig:
    m = ModelsConfig()
    md = os.getenv("MODELS__MODEL_DIR")
    am = os.getenv("MODELS__ACTIVE_MODEL")
    kr = os.getenv("MODELS__KEEP_RUNS")
    if md:
        m = replace(m, model_dir=Path(md))
    if am:
        m = replace(m, active_model=am)
    if kr is not None and kr.isdigit():
        m = replace(m, keep_runs=int(kr))
    return m


def _load_render_from_env() -> RenderConfig:
    r = RenderConfig()
    af = os.getenv("RENDER__ACTIVE_FILL")
    inf = os.getenv("RENDER__INACTIVE_FILL")
    st = os.getenv("RENDER__STROKE")
    if af:
        r = replace(r, active_fill=af)
    if inf:
        r = replace(r, inactive_fill=inf)
    if st:
        r = replace(r, stroke=st)
    return r


def _merge_app(base: AppConfig, data: dict[str, object]) -> AppConfig:
    out = base
    if "threads" in data:
        out = replace(out, threads=int(str(data["threads"])))
    if "port" in data:
        out = replace(out, port=_parse_port(str(data["port"])))
    return out


def _merge_training(base: TrainingConfig, data: dict[str, object]) -> TrainingConfig:
    out = base
    if "hidden_layers" in data:
        layers = data["hidden_layers"]
        if isinstance(layers, list):
            out = replace(out, hidden_layers=tuple(int(str(x)) for x in layers))
        else:
            out = replace(out, hidden_layers=parse_layers(str(layers)))
    if "passes" in data:
        out = replace(out, passes=int(str(data["passes"])))
    if "batch_size" in data:
        out = replace(out, batch_size=int(str(data["batch_size"])))
    if "learning_rate" in data:
        out = replace(out, learning_rate=float(str(data["learning_rate"])))
    if "optimizer" in data:
        out = replace(out, optimizer=str(data["optimizer"]).strip().lower())
    if "backend" in data:
        out = replace(out, backend=str(data["backend"]).strip())
    if "seed" in data:
        out = replace(out, seed=int(str(data["seed"])))
    return out


def _merge_models(base: ModelsConfig, data: dict[str, object]) -> ModelsConfig:
    out = base
    if "model_dir" in data:
        out = replace(out, model_dir=Path(str(data["model_dir"])))
    if "active_model" in data:
        out = replace(out, active_model=str(data["active_model"]))
    if "keep_runs" in data:
        out = replace(out, keep_runs=int(str(data["keep_runs"])))
    return out


def _merge_render(base: RenderConfig, data: dict[str, object]) -> RenderConfig:
    out = base
    for key in ("active_fill", "inactive_fill", "stroke"):
        val = data.get(key)
        if isinstance(val, str) and val:
            out = replace(out, **{key: val})
    return out


def _toml_table(raw: object, key: str) -> dict[str, object]:
    if isinstance(raw, dict):
        tab: object = raw.get(key, {})
        if isinstance(tab, dict):
            return {str(k): v for k, v in tab.items()}
    return {}
