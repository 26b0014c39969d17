# swell/tasks/loader.py
from __future__ import annotations
import importlib
from pathlib import Path
from typing import Type

from swell.tasks.task import Task
from swell.tasks.task_registry import TaskRegistry


class TaskLoadError(RuntimeError): ...


_loaded = False


def autoload_tasks(package_root: str = "swell.tasks") -> None:
    """Import every `<tool>/<func>/main.py` under swell.tasks so the
    @register_task decorators run."""
    global _loaded
    if _loaded:
        return
    pkg = importlib.import_module(package_root)
    # namespace packages: pkgutil does not descend into them, so walk the tree
    for root in map(Path, pkg.__path__):
        for main in sorted(root.rglob("main.py")):
            rel = main.relative_to(root).with_suffix("")
            if any(part.startswith("_") for part in rel.parts):
                continue
            name = ".".join([package_root, *rel.parts])
            try:
                importlib.import_module(name)
            except ImportError as e:
                raise TaskLoadError(f"Cannot import {name}: {e}") from e
    _loaded = True


def load_task_class(kind: str) -> Type[Task]:
    """`bwa.mem` → class registered from swell/tasks/bwa/mem/main.py"""
    try:
        return TaskRegistry.get(kind)
    except KeyError:
        pass

    module_path = f"swell.tasks.{kind.lower()}.main"
    try:
        importlib.import_module(module_path)
    except ModuleNotFoundError as e:
        raise KeyError(f"Unknown task TYPE: {kind}") from e
    return TaskRegistry.get(kind)
