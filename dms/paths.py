from pathlib import Path, PurePath
from typing import Callable, Tuple, Union

from dms.exceptions import IOFailure

DEFAULT_FOLDER_SIZE = 1000
ID_SEPARATOR = "~"


def storage_folder(document_id: int, folder_size: int = DEFAULT_FOLDER_SIZE) -> str:
    """
    Returns the storage folder for a document id.

    Documents are bucketed ``folder_size`` ids per folder, so ids 0-999 land
    in ``"0"``, 1000-1999 in ``"1"`` and so on.

    Args:
        document_id: Document ID
        folder_size: Number of consecutive ids sharing one folder

    Returns:
        Folder name
    """
    return str(int(document_id) // folder_size)


def stored_filename(document_id: int, source_name: Union[str, PurePath]) -> str:
    """
    Returns the stored filename ``"<id>~<basename>"`` for a source file.
    """
    return f"{document_id}{ID_SEPARATOR}{PurePath(source_name).name}"


def allocate(
    document_id: int,
    source_name: Union[str, PurePath],
    shard_fn: Callable[[int], str] = storage_folder,
) -> Tuple[str, str]:
    """
    Computes where a document's file is stored.

    The folder depends on the id only, so replacing a document's file always
    targets the same folder.

    Args:
        document_id: Document ID
        source_name: Path or name of the source file; only the basename is used
        shard_fn: Maps a document id to its folder name

    Returns:
        Tuple of (folder, stored_filename)
    """
    return shard_fn(document_id), stored_filename(document_id, source_name)


def create_storage_folder(path: Path) -> Path:
    """
    Creates a storage folder if it is absent. Safe to race with another creator.

    Raises:
        IOFailure if the folder cannot be created
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise IOFailure(f"Failed to create storage folder {path}: {e}") from e
    return path


def filename_without_id(filename: str) -> str:
    """
    Strips the ``"<id>~"`` prefix from a stored filename.
    """
    return filename.split(ID_SEPARATOR, 1)[-1]
