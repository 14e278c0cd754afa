"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

services/file_service.py
File removal for the deletion executor: permanent unlink or system trash (via send2trash).
"""
import os
from pathlib import Path

from send2trash import send2trash


class FileService:
    """
    Removes files. A file that is already gone is reported, not raised:
    resumed runs routinely revisit candidates that were removed before an interruption.
    """

    @staticmethod
    def remove(file_path: str, use_trash: bool = False) -> bool:
        """
        Remove one file.
        Returns False if the file did not exist, True if it was removed.
        Raises RuntimeError if the file exists but could not be removed.
        """
        if use_trash:
            return FileService.move_to_trash(file_path)
        try:
            os.remove(file_path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise RuntimeError(f"Failed to delete file: {e}") from e
        return True

    @staticmethod
    def move_to_trash(file_path: str) -> bool:
        """Moves a file to the system trash. Returns False if it does not exist."""
        path = Path(file_path)

        if not os.path.lexists(path):
            return False

        try:
            send2trash(str(path))
        except Exception as e:
            raise RuntimeError(f"Failed to move to trash: {e}") from e
        return True

    @staticmethod
    def exists(file_path: str) -> bool:
        return os.path.lexists(file_path)
