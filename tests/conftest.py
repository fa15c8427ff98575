"""Golden-program parametrization.

Tests that take a ``golden`` argument are run once per YAML record. The
``golden_test(pattern)`` marker (registered in pyproject.toml) picks the
records; globs are relative to this directory.
"""

from pathlib import Path
from typing import Any, Dict, List

import yaml


TESTS_DIR = Path(__file__).parent
DEFAULT_PATTERN = "golden/*.yaml"


def _load_golden(path: Path) -> Dict[str, Any]:
    """Read one record; load failures are kept so the test reports them."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        return {"__yaml_load_error__": str(e), "__path__": str(path)}
    if isinstance(data, dict):
        data.setdefault("__path__", str(path))
    return data


def pytest_generate_tests(metafunc: Any) -> None:
    if "golden" not in metafunc.fixturenames:
        return

    patterns = [
        m.args[0] if m.args else DEFAULT_PATTERN
        for m in metafunc.definition.iter_markers(name="golden_test")
    ] or [DEFAULT_PATTERN]

    paths: List[Path] = []
    for pattern in patterns:
        paths.extend(sorted(TESTS_DIR.glob(pattern)))

    metafunc.parametrize(
        "golden",
        [_load_golden(p) for p in paths],
        ids=[p.stem for p in paths],
    )
