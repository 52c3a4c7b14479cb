"""
Name -> class lookup for the algorithm families

Looks up and constructs tracking engines and global searches
by a short name. Configuration records (``SupervisorConfig``,
``SimulationConfig``) hold names plus kwargs and resolve them here.

Lazy imports keep startup light and avoid circular imports between the
algorithm packages and the controller.
"""
from importlib import import_module
from typing import Dict, Type, Union

from .base import Tracker
from .global_search.base import GlobalSearch

Algorithm = Union[Tracker, GlobalSearch]

# name -> (module_path, class_name)
_REGISTRY = {
    "pando":     ("mppt.algorithms.local.pando", "PANDO"),
    "inc_cond":  ("mppt.algorithms.local.inc_cond", "IncCond"),
    "pso":       ("mppt.algorithms.global_search.pso", "PSO"),
    "levy":      ("mppt.algorithms.global_search.levy", "LevySearch"),
    "zone_scan": ("mppt.algorithms.global_search.zone_scan", "ZoneScan"),
}

# User-facing aliases -> canonical names
_ALIASES = {
    "p&o": "pando",
    "po": "pando",
    "incond": "inc_cond",
    "ic": "inc_cond",
    "cuckoo": "levy",
    "zone": "zone_scan",
}


def _canonical(name: str) -> str:
    key = name.strip().lower()
    return _ALIASES.get(key, key)


def register(name: str, module_path: str, class_name: str) -> None:
    """Add (or replace) ``name`` -> ``module_path.class_name``; resolved on first use."""
    if not name or not name.strip():
        raise ValueError("name must be a non-empty string")
    _REGISTRY[name.strip().lower()] = (module_path, class_name)


def get_class(name: str) -> Type[Algorithm]:
    key = _canonical(name)
    if key not in _REGISTRY:
        raise KeyError(f"Unknown algorithm '{name}'. Available: {sorted(_REGISTRY)}")
    module_path, class_name = _REGISTRY[key]
    cls = getattr(import_module(module_path), class_name)
    if not (isinstance(cls, type) and issubclass(cls, (Tracker, GlobalSearch))):
        raise TypeError(f"{module_path}.{class_name} is not a tracking engine or a global search")
    return cls


def is_search(name: str) -> bool:
    return issubclass(get_class(name), GlobalSearch)


def build(name: str, **kwargs) -> Algorithm:
    """Construct ``name`` with ``kwargs``; unknown kwargs surface as the class's TypeError."""
    return get_class(name)(**kwargs)


def catalog() -> Dict[str, dict]:
    """describe() of every entry built with its defaults, tagged with its kind."""
    entries: Dict[str, dict] = {}
    for key in _REGISTRY:
        meta = {"label": key.upper(), "params": []}
        meta.update(build(key).describe() or {})
        meta.update(key=key, kind="search" if is_search(key) else "tracker")
        entries[key] = meta
    return entries


def available() -> Dict[str, str]:
    return {key: ":".join(target) for key, target in _REGISTRY.items()}


__all__ = ["build", "available", "register", "get_class", "is_search", "catalog"]
