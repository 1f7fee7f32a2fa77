"""Stage pipeline with explicit execution order."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path

import yaml

from laborsim.core.registry import get_stage
from laborsim.core.stage import RegimeRun, Stage


@dataclass(slots=True)
class Pipeline:
    """
    Ordered list of stages applied to every regime.

    Stages run in the exact order given; users are responsible for a
    logically valid order (a population must be drawn before hours are
    solved, hours before participation is resolved).

    Attributes
    ----------
    stages : list[Stage]
        Ordered stage instances.
    """

    stages: list[Stage] = field(default_factory=list)
    _stage_map: dict[str, Stage] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        self._stage_map = {s.name: s for s in self.stages}

    @classmethod
    def from_stage_list(cls, stage_names: list[str]) -> Pipeline:
        """
        Build pipeline from ordered list of stage names.

        Raises
        ------
        KeyError
            If a stage name is not found in the registry.
        """
        return cls(stages=[get_stage(name)() for name in stage_names])

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> Pipeline:
        """
        Build pipeline from a YAML file with a ``stages`` list.

        Supports ``stage_name`` and ``stage_name x N`` (repeat N times).

        Raises
        ------
        ValueError
            If the YAML has no ``stages`` key.
        """
        yaml_path = Path(yaml_path)
        with open(yaml_path) as f:
            config = yaml.safe_load(f)

        if not isinstance(config, dict) or "stages" not in config:
            raise ValueError(f"YAML file must have 'stages' key: {yaml_path}")

        stage_names: list[str] = []
        for spec in config["stages"]:
            stage_names.extend(cls.parse_stage_spec(spec))
        return cls.from_stage_list(stage_names)

    @staticmethod
    def parse_stage_spec(spec: str) -> list[str]:
        """
        Parse a stage specification string into a list of stage names.

        - 'stage_name' -> ['stage_name']
        - 'stage_name x 3' -> ['stage_name', 'stage_name', 'stage_name']
        """
        spec = spec.strip()
        match = re.match(r"^(.+?)\s+x\s+(\d+)$", spec)
        if match:
            return [match.group(1).strip()] * int(match.group(2))
        return [spec]

    def execute(self, run: RegimeRun) -> None:
        """Execute all stages in pipeline order on one regime."""
        for s in self.stages:
            s.execute(run)

    def insert_after(self, after: str, new_stage: Stage | type[Stage] | str) -> None:
        """
        Insert a stage after the named stage.

        When the name is repeated (``stage_name x N``) the new stage goes
        after its last instance.

        Raises
        ------
        ValueError
            If 'after' stage not found in pipeline.
        """
        if after not in self._stage_map:
            raise ValueError(f"Stage '{after}' not found in pipeline")

        new_stage = _instantiate(new_stage)
        idx = max(i for i, s in enumerate(self.stages) if s.name == after)
        self.stages.insert(idx + 1, new_stage)
        self._stage_map[new_stage.name] = new_stage

    def remove(self, stage_name: str) -> None:
        """
        Remove every instance of a stage from the pipeline.

        Raises
        ------
        ValueError
            If stage not found in pipeline.
        """
        if stage_name not in self._stage_map:
            raise ValueError(f"Stage '{stage_name}' not found in pipeline")

        del self._stage_map[stage_name]
        self.stages = [s for s in self.stages if s.name != stage_name]

    def replace(self, old_name: str, new_stage: Stage | type[Stage] | str) -> None:
        """
        Replace every instance of a stage with another one.

        Raises
        ------
        ValueError
            If old stage not found in pipeline.
        """
        if old_name not in self._stage_map:
            raise ValueError(f"Stage '{old_name}' not found in pipeline")

        new_stage = _instantiate(new_stage)
        del self._stage_map[old_name]
        self.stages = [new_stage if s.name == old_name else s for s in self.stages]
        self._stage_map[new_stage.name] = new_stage

    @property
    def stage_names(self) -> list[str]:
        return [s.name for s in self.stages]

    def __contains__(self, stage_name: object) -> bool:
        return stage_name in self._stage_map

    def __len__(self) -> int:
        return len(self.stages)

    def __repr__(self) -> str:
        return f"Pipeline(n_stages={len(self.stages)})"


def _instantiate(s: Stage | type[Stage] | str) -> Stage:
    if isinstance(s, str):
        return get_stage(s)()
    if isinstance(s, type):
        return s()
    return s


def create_default_pipeline() -> Pipeline:
    """
    Load the default stage order from the packaged ``default_pipeline.yml``.

    Users can modify it using insert_after(), remove(), replace(), or build
    their own pipeline from a YAML file with Pipeline.from_yaml().
    """
    import laborsim.stages  # noqa: F401 - registers the built-in stages

    traversable = resources.files("laborsim") / "default_pipeline.yml"
    with resources.as_file(traversable) as yaml_fs_path:
        return Pipeline.from_yaml(Path(yaml_fs_path))
