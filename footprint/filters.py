from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath


ASSET_EXTENSIONS = (".js", ".css", ".mjs", ".cjs")
EXCLUDED_EXTENSIONS = (".map",)


def is_asset_file(filename: str) -> bool:
    lower = filename.lower()
    return lower.endswith(ASSET_EXTENSIONS) and not lower.endswith(EXCLUDED_EXTENSIONS)


def _normalize_pattern(pattern: str) -> str:
    normalized = pattern.strip().replace("\\", "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def _match_pattern(path: str, pattern: str) -> bool:
    path_obj = PurePosixPath(path)
    norm = _normalize_pattern(pattern)
    if not norm:
        return False
    # Support both dist-root anchored and recursive matching styles.
    return (
        path_obj.match(norm)
        or path_obj.match(f"**/{norm}")
        or (norm.endswith("/") and path.startswith(norm))
    )


@dataclass(slots=True, frozen=True)
class PathFilter:
    """Include/exclude globs layered on top of the asset-extension rule.

    With no include patterns only asset files are measured; explicit include
    patterns replace the extension rule. Exclusions always win.
    """

    include_patterns: tuple[str, ...] = ()
    exclude_patterns: tuple[str, ...] = ()

    def matches(self, path: str) -> bool:
        if self.include_patterns:
            if not any(_match_pattern(path, pattern) for pattern in self.include_patterns):
                return False
        elif not is_asset_file(PurePosixPath(path).name):
            return False
        if any(_match_pattern(path, pattern) for pattern in self.exclude_patterns):
            return False
        return True


def build_path_filter(
    include_patterns: list[str] | tuple[str, ...] | None = None,
    exclude_patterns: list[str] | tuple[str, ...] | None = None,
) -> PathFilter:
    include = tuple(_normalize_pattern(pattern) for pattern in (include_patterns or []) if pattern)
    exclude = tuple(_normalize_pattern(pattern) for pattern in (exclude_patterns or []) if pattern)
    return PathFilter(include_patterns=include, exclude_patterns=exclude)
