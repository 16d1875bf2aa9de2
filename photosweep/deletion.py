"""
Safe file deletion with per-file error accounting and progress tracking.
"""

import os
from dataclasses import dataclass, field
from typing import Iterable, List

from tqdm import tqdm

MAX_ERROR_DETAILS = 10


@dataclass
class DeletionResult:
    """Outcome of a delete-by-ids request"""

    deleted: List[str] = field(default_factory=list)
    already_deleted: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def total_attempted(self) -> int:
        return len(self.deleted) + len(self.already_deleted) + len(self.errors)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def removed_ids(self) -> List[str]:
        """Ids no longer present in the gallery, whoever removed them"""
        return self.deleted + self.already_deleted

    @property
    def error_details(self) -> List[str]:
        return self.errors[:MAX_ERROR_DETAILS]

    @property
    def has_more_errors(self) -> bool:
        return len(self.errors) > MAX_ERROR_DETAILS


def delete_files(paths: Iterable[str]) -> DeletionResult:
    """
    Delete each file, separating files that were already gone from real errors.
    Never raises for an individual file.
    """
    paths = list(paths)
    result = DeletionResult()

    with tqdm(total=len(paths), desc="Deleting photos", disable=not paths) as pbar:
        for path in paths:
            try:
                os.remove(path)
                result.deleted.append(path)
            except FileNotFoundError:
                result.already_deleted.append(path)
            except OSError as e:
                result.errors.append(f"Failed to delete {path}: {e}")
            pbar.update(1)

    return result
