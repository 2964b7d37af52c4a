import importlib.util
import sys
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType

import yaml


@dataclass
class CaseConfig:
    id: str
    prompt: str
    expected: str | None = None
    vars: dict | None = None


@dataclass
class PackConfig:
    id: str
    name: str
    description: str
    prompt: str
    cases: list[CaseConfig] = field(default_factory=list)
    providers: list = field(default_factory=list)
    grader: ModuleType | None = None


def _load_yaml(path: Path) -> dict | list:
    with open(path) as f:
        return yaml.safe_load(f)


def _import_module_from_path(name: str, path: Path) -> ModuleType:
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load module from {path}")
    mod = importlib.util.module_from_spec(spec)
    sys.modules[name] = mod
    spec.loader.exec_module(mod)
    return mod


def load_pack(pack_name: str, packs_dir: str = "packs") -> PackConfig:
    pack_path = Path(packs_dir) / pack_name

    pack_yaml_path = pack_path / "pack.yaml"
    if not pack_yaml_path.exists():
        raise FileNotFoundError(f"Pack config not found: {pack_yaml_path}")
    pack_data = _load_yaml(pack_yaml_path) or {}

    cases_yaml_path = pack_path / "cases.yaml"
    if not cases_yaml_path.exists():
        raise FileNotFoundError(f"Cases file not found: {cases_yaml_path}")
    cases_data = _load_yaml(cases_yaml_path)

    template = pack_data.get("prompt", "{prompt}")

    cases: list[CaseConfig] = []
    if isinstance(cases_data, list):
        for index, entry in enumerate(cases_data):
            # A case may carry its own prompt; otherwise the pack template is used
            expected = entry.get("expected")
            cases.append(
                CaseConfig(
                    id=str(entry.get("id", index + 1)),
                    prompt=entry.get("prompt", template),
                    expected=str(expected) if expected is not None else None,
                    vars=entry.get("vars") or None,
                )
            )

    grader_path = pack_path / "grader.py"
    grader_mod = None
    if grader_path.exists():
        grader_mod = _import_module_from_path(
            f"promptrun.graders.{pack_name}", grader_path
        )

    return PackConfig(
        id=pack_data.get("id", pack_name),
        name=pack_data.get("name", pack_name),
        description=pack_data.get("description", ""),
        prompt=template,
        cases=cases,
        providers=list(pack_data.get("providers") or []),
        grader=grader_mod,
    )


def list_packs(packs_dir: str = "packs") -> list[str]:
    packs_path = Path(packs_dir)
    if not packs_path.is_dir():
        return []
    return sorted(
        d.name
        for d in packs_path.iterdir()
        if d.is_dir() and (d / "pack.yaml").exists()
    )
