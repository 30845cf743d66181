"""
Suite registration and discovery.
"""

from __future__ import annotations

import importlib.util
import logging
import sys
from pathlib import Path
from typing import Iterator, Optional

from .errors import DuplicateSuiteId, ErrorCode, HarnessError
from .types import CaseFactory, FoundationKind, Hooks, Step, SuiteDeclaration

logger = logging.getLogger(__name__)


def describe_suite(
    id: str,
    title: str,
    foundation: FoundationKind | str,
    test_cases: CaseFactory,
    before_all: Optional[Step] = None,
    before_each: Optional[Step] = None,
    after_each: Optional[Step] = None,
    after_all: Optional[Step] = None,
) -> SuiteDeclaration:
    """Build a suite declaration. ``foundation`` accepts ``"dev"`` or ``"zombie"``."""
    return SuiteDeclaration(
        id=id,
        title=title,
        foundation=FoundationKind.parse(foundation),
        test_cases=test_cases,
        hooks=Hooks(
            before_all=before_all,
            before_each=before_each,
            after_each=after_each,
            after_all=after_all,
        ),
    )


class SuiteRegistry:
    """Ordered, append-only collection of suite declarations for one run."""

    def __init__(self) -> None:
        self._suites: dict[str, SuiteDeclaration] = {}

    def register(self, declaration: SuiteDeclaration) -> None:
        if not isinstance(declaration, SuiteDeclaration):
            raise HarnessError(
                ErrorCode.INVALID_DECLARATION,
                f"expected SuiteDeclaration, got {type(declaration).__name__}",
            )
        if declaration.id in self._suites:
            raise DuplicateSuiteId(declaration.id)
        self._suites[declaration.id] = declaration
        logger.debug(f"Registered suite {declaration.id} ({declaration.foundation.value})")

    def all(self) -> list[SuiteDeclaration]:
        return list(self._suites.values())

    def get(self, suite_id: str) -> SuiteDeclaration:
        return self._suites[suite_id]

    def clear(self) -> None:
        self._suites.clear()

    def __len__(self) -> int:
        return len(self._suites)

    def __iter__(self) -> Iterator[SuiteDeclaration]:
        return iter(self.all())

    def __contains__(self, suite_id: object) -> bool:
        return suite_id in self._suites

    def discover(self, path: str | Path) -> int:
        """Register every module-level SuiteDeclaration found under ``path``.

        Files are visited in sorted path order and declarations in definition
        order. Files starting with ``_`` are ignored. Returns the number of
        suites registered.
        """
        root = Path(path)
        files = [root] if root.is_file() else sorted(
            p for p in root.rglob("*.py") if not p.name.startswith("_")
        )

        count = 0
        for file in files:
            for declaration in load_declarations(file, root if root.is_dir() else file.parent):
                self.register(declaration)
                count += 1
        return count


def load_declarations(file: Path, root: Path) -> list[SuiteDeclaration]:
    """Import ``file`` and return its module-level suite declarations."""
    relative = file.relative_to(root).with_suffix("")
    module_name = "spectre_suites." + ".".join(relative.parts)

    spec = importlib.util.spec_from_file_location(module_name, file)
    if spec is None or spec.loader is None:
        raise HarnessError(ErrorCode.SUITE_IMPORT_FAILED, f"cannot import {file}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except HarnessError:
        sys.modules.pop(module_name, None)
        raise
    except Exception as e:
        sys.modules.pop(module_name, None)
        raise HarnessError(
            ErrorCode.SUITE_IMPORT_FAILED, f"{file}: {type(e).__name__}: {e}"
        ) from e

    found: list[SuiteDeclaration] = []
    for value in vars(module).values():
        if isinstance(value, SuiteDeclaration) and all(value is not f for f in found):
            found.append(value)
    logger.debug(f"Loaded {len(found)} suite(s) from {file}")
    return found
