from __future__ import annotations

from pathlib import Path
from typing import Iterable

TMP_SUFFIX = ".tmp"


def tmp_path_for(final_path: Path) -> Path:
    """Sibling path an output is staged under until the whole run has succeeded."""

    final_path = Path(final_path)
    return final_path.with_name(final_path.name + TMP_SUFFIX)


def cleanup_tmp_files(paths: Iterable[Path]) -> None:
    """Remove staged temporaries left behind by an aborted run."""

    for final_path in paths:
        tmp = tmp_path_for(final_path)
        if tmp.exists():
            tmp.unlink()
