"""Lookup of the JSON tables and SQL files shipped with the package."""

from pathlib import Path

PACKAGE_DIR = Path(__file__).resolve().parent
PACKAGE_DATA_DIR = PACKAGE_DIR / "data"
# src/foodglam/ -> repository root
REPO_ROOT = PACKAGE_DIR.parents[1]


def data_path_candidates(
    configured_path: str,
    fallback_dir: str | Path = PACKAGE_DATA_DIR,
    fallback_name: str | None = None,
) -> list[Path]:
    """Return the locations checked for ``configured_path``, in order.

    Absolute paths are taken as given. Relative ones are tried against the
    working directory and the repository root. The bundled copy in
    ``fallback_dir`` comes last.
    """

    configured = Path(configured_path).expanduser()
    if configured.is_absolute():
        candidates = [configured]
    else:
        candidates = [Path.cwd() / configured, REPO_ROOT / configured]

    name = fallback_name or configured.name
    if name:
        candidates.append(Path(fallback_dir) / name)

    unique: dict[Path, None] = {}
    for candidate in candidates:
        unique.setdefault(candidate.resolve(), None)
    return list(unique)


def resolve_data_path(
    configured_path: str,
    *,
    fallback_dir: str | Path = PACKAGE_DATA_DIR,
    fallback_name: str | None = None,
) -> Path:
    """Return the first existing file for ``configured_path``.

    Raises :class:`FileNotFoundError` listing every location tried.
    """

    tried = data_path_candidates(configured_path, fallback_dir, fallback_name)
    for path in tried:
        if path.is_file():
            return path
    raise FileNotFoundError(
        f"Unable to locate '{configured_path}'. Checked: {', '.join(map(str, tried))}"
    )
