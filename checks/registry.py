"""Check registry: maps check identifiers to their definitions.

A *check-definition unit* is any Python module exposing a module-level
``register(registry)`` function.  ``CheckRegistry.load()`` imports each
unit it is pointed at and calls that function; the unit registers its
checks as a side effect.

Load isolation:
    Every unit registers into a private staging registry first and is
    merged only if ``register()`` returns cleanly.  A unit that fails to
    import or raises half way through contributes nothing, is logged as a
    warning, and loading carries on with the next unit.  A malformed
    check never aborts a scan.

Duplicates:
    Re-registering an identifier replaces the earlier definition (last
    registration wins) and logs a warning.  The pillar index holds each
    identifier once.
"""
from __future__ import annotations

import importlib
import importlib.util
import logging
import pkgutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Iterable, Union

from schemas.domain import CheckDefinition
from schemas.taxonomy import Pillar

_log = logging.getLogger(__name__)

BUILTIN_CHECK_PACKAGE = "checks"

Source = Union[str, Path]

# Members of a check package that hold shared code rather than checks
_NON_UNIT_MODULES = frozenset({"registry", "base"})


@dataclass
class LoadReport:
    """What ``CheckRegistry.load()`` did, unit by unit."""
    loaded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    registered: int = 0

    @property
    def ok(self) -> bool:
        return not self.failed


class CheckRegistry:
    """Explicit, instance-scoped set of known checks."""

    def __init__(self) -> None:
        self._checks: dict[str, CheckDefinition] = {}
        self._by_pillar: dict[Pillar, list[str]] = {p: [] for p in Pillar}

    # ── Registration ──────────────────────────────────────────────

    def register(self, definition: CheckDefinition) -> None:
        if not isinstance(definition, CheckDefinition):
            raise TypeError(f"Expected CheckDefinition, got {type(definition).__name__}")

        previous = self._checks.get(definition.identifier)
        if previous is not None:
            _log.warning("Check %s registered twice; the later definition replaces the earlier one",
                         definition.identifier)
            self._by_pillar[previous.pillar].remove(previous.identifier)

        self._checks[definition.identifier] = definition
        self._by_pillar[definition.pillar].append(definition.identifier)

    def merge(self, other: "CheckRegistry") -> int:
        """Register every check from *other*; returns how many."""
        for definition in other.get_all():
            self.register(definition)
        return len(other)

    # ── Lookups ───────────────────────────────────────────────────

    def get_all(self) -> list[CheckDefinition]:
        """All checks, ordered by identifier."""
        return [self._checks[cid] for cid in sorted(self._checks)]

    def get_by_pillar(self, pillar: Pillar | str) -> list[CheckDefinition]:
        ids = self._by_pillar.get(Pillar.parse(pillar), [])
        return [self._checks[cid] for cid in sorted(ids)]

    def get_by_id(self, identifier: str) -> CheckDefinition | None:
        return self._checks.get(identifier)

    def identifiers(self) -> list[str]:
        return sorted(self._checks)

    def __len__(self) -> int:
        return len(self._checks)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._checks

    # ── Loading ───────────────────────────────────────────────────

    def load(self, sources: Iterable[Source]) -> LoadReport:
        """Load check-definition units from dotted module / package names,
        ``.py`` files or directories of ``.py`` files.

        Never raises for a bad unit; see ``LoadReport.failed``.
        """
        report = LoadReport()
        for source in sources:
            for unit_name, loader in _discover_units(source, report):
                self._load_unit(unit_name, loader, report)
        _log.info("Loaded %d check(s) from %d unit(s); %d unit(s) failed",
                  report.registered, len(report.loaded), len(report.failed))
        return report

    def _load_unit(self, unit_name: str, loader, report: LoadReport) -> None:
        try:
            module = loader()
            register_fn = getattr(module, "register", None)
            if not callable(register_fn):
                raise AttributeError(f"{unit_name} has no register(registry) function")
            staging = CheckRegistry()
            register_fn(staging)
        except Exception as e:
            _log.warning("Skipping check unit %s: %s: %s", unit_name, type(e).__name__, e)
            report.failed[unit_name] = f"{type(e).__name__}: {e}"
            return

        report.registered += self.merge(staging)
        report.loaded.append(unit_name)


# ── Unit discovery ────────────────────────────────────────────────

def _module_loader(name: str):
    return lambda: importlib.import_module(name)


def _file_loader(path: Path):
    def _load() -> ModuleType:
        module_name = f"_waf_checks_{path.stem}_{abs(hash(str(path.resolve())))}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load {path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(module_name, None)
            raise
        return module
    return _load


def _discover_units(source: Source, report: LoadReport):
    """Yield ``(unit_name, loader)`` pairs for one source.

    Private package members and the shared ``base`` / ``registry``
    modules are not units.  Every other member must expose ``register``.
    """
    if _is_path(source):
        path = Path(source)
        if path.is_dir():
            for file in sorted(path.glob("*.py")):
                if not file.name.startswith("_"):
                    yield str(file), _file_loader(file)
        elif path.is_file():
            yield str(path), _file_loader(path)
        else:
            _log.warning("Check source %s does not exist", path)
            report.failed[str(path)] = "FileNotFoundError: no such file"
        return

    name = str(source)
    try:
        module = importlib.import_module(name)
    except Exception as e:
        _log.warning("Skipping check unit %s: %s: %s", name, type(e).__name__, e)
        report.failed[name] = f"{type(e).__name__}: {e}"
        return

    if not hasattr(module, "__path__"):
        yield name, lambda: module
        return

    for info in sorted(pkgutil.iter_modules(module.__path__), key=lambda m: m.name):
        if info.name.startswith("_") or info.ispkg or info.name in _NON_UNIT_MODULES:
            continue
        member = f"{name}.{info.name}"
        yield member, _module_loader(member)


def _is_path(source: Source) -> bool:
    """Dotted module names are imported; anything that looks like a path is read from disk."""
    if isinstance(source, Path):
        return True
    text = str(source)
    return text.endswith(".py") or "/" in text or "\\" in text


def load_builtin_checks(extra_sources: Iterable[Source] = ()) -> tuple[CheckRegistry, LoadReport]:
    """Registry populated with the bundled catalog plus any extra sources."""
    registry = CheckRegistry()
    report = registry.load([BUILTIN_CHECK_PACKAGE, *extra_sources])
    return registry, report
