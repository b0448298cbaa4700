"""Configuration layer: config.toml into a frozen Settings dataclass."""

import dataclasses
import logging
import tomllib
from pathlib import Path
from typing import Any

from errors import ConfigurationError
from solvers.annealing import AnnealingSchedule
from weights import DEFAULT_WEIGHTS, PenaltyWeights

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config.toml"


@dataclasses.dataclass(slots=True, frozen=True)
class Settings:
    hardware: str = 'ansi'
    layout: str = 'qwerty'
    seed: int | None = None
    runs: int = 1
    processes: int = 1
    calibrate: bool = False
    refine: bool = False
    logs_dir: str | None = None
    fold_shift: bool = True
    schedule: AnnealingSchedule = AnnealingSchedule()
    weights: PenaltyWeights = DEFAULT_WEIGHTS

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        '''
        Settings from the parsed toml document:

            [run]       hardware, layout, seed, runs, processes, calibrate, refine, logs_dir
            [corpus]    fold_shift
            [schedule]  the AnnealingSchedule fields
            [weights]   penalty name = weight, merged over the defaults
        '''
        unknown = set(data) - {'run', 'corpus', 'schedule', 'weights'}
        if unknown:
            raise ConfigurationError(f"Unknown settings sections: {', '.join(sorted(unknown))}")

        run = _section(data, 'run')
        corpus = _section(data, 'corpus')

        kwargs: dict[str, Any] = {}
        for key, value in run.items():
            if key in ('hardware', 'layout', 'logs_dir'):
                kwargs[key] = _typed(f'run.{key}', value, str)
            elif key in ('seed', 'runs', 'processes'):
                kwargs[key] = _typed(f'run.{key}', value, int)
            elif key in ('calibrate', 'refine'):
                kwargs[key] = _typed(f'run.{key}', value, bool)
            else:
                raise ConfigurationError(f"Unknown setting run.{key}")

        for key, value in corpus.items():
            if key == 'fold_shift':
                kwargs[key] = _typed(f'corpus.{key}', value, bool)
            else:
                raise ConfigurationError(f"Unknown setting corpus.{key}")

        for key in ('runs', 'processes'):
            if key in kwargs and kwargs[key] < 1:
                raise ConfigurationError(f"run.{key} must be >= 1, got {kwargs[key]}")

        kwargs['schedule'] = AnnealingSchedule.from_dict(_section(data, 'schedule'))
        kwargs['weights'] = PenaltyWeights.from_dict(_section(data, 'weights'), base=DEFAULT_WEIGHTS)
        return cls(**kwargs)

    def replace(self, **overrides: Any) -> "Settings":
        '''a copy with the overrides that are not None, e.g. from command line flags'''
        return dataclasses.replace(self, **{key: value for key, value in overrides.items() if value is not None})


def _section(data: dict, name: str) -> dict:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigurationError(f"[{name}] must be a table")
    return section


def _typed(name: str, value: Any, expected: type) -> Any:
    # bool is an int, but an int setting should not accept true/false
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        raise ConfigurationError(f"{name} must be of type {expected.__name__}, got {value!r}")
    return value


def load_settings(config_path: Path | str | None = None) -> Settings:
    '''
    Read the settings file. Without an explicit path, a missing default config.toml
    means default settings.
    '''
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
        if not config_path.exists():
            logger.warning(f"config file not found at {config_path}, using default settings")
            return Settings()

    config_path = Path(config_path)
    try:
        with config_path.open("rb") as fh:
            data = tomllib.load(fh)
    except OSError as exc:
        raise ConfigurationError(f"failed to read config {config_path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"malformed config in {config_path}: {exc}") from exc

    return Settings.from_dict(data)
