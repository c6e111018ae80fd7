"""
Content-type detection for served documents, and the display table of file types.

Detection tries, in order: libmagic byte sniffing (python-magic), the
``file`` command, and a small extension table. The first detector that is
available and produces an answer wins.
"""
import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

try:  # pragma: no cover - optional dependency
    import magic  # type: ignore
except ImportError:  # pragma: no cover - python-magic or libmagic not installed
    magic = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

EXTENSION_MIME_TYPES = {
    "pdf": "application/pdf",
    "html": "text/html",
    "htm": "text/html",
}

FILE_TYPES = {
    'gif': 'GIF image - good for diagrams',
    'jpg': 'JPEG image - good for photos',
    'jpeg': 'JPEG image - good for photos',
    'png': 'PNG image - good general-purpose format',
    'ico': 'Icon image',
    'tiff': 'Tagged image format',
    'doc': 'Word document',
    'xls': 'Excel spreadsheet',
    'zip': 'ZIP compressed file',
    'gz': 'GZIP compressed file',
    'dmg': 'Apple disk image',
    'pdf': 'Adobe Acrobat PDF file',
    'mp3': 'MP3 audio file',
    'wav': 'WAV audio file',
    'avi': 'AVI video file',
    'mpg': 'MPEG video file',
    'mpeg': 'MPEG video file',
    'js': 'Javascript file',
    'css': 'CSS file',
    'html': 'HTML file',
    'htm': 'HTML file',
}


def get_file_extension(filename: str) -> str:
    """
    Gets the extension of a filename, without the dot and lowercased.
    """
    return Path(filename).suffix.lstrip('.').lower()


def get_file_type(extension: str) -> str:
    """
    Returns a human-readable description of a file extension.

    Unknown extensions are returned unchanged.
    """
    return FILE_TYPES.get(extension.lstrip('.').lower(), extension)


class LibmagicDetector:
    """Sniffs the leading bytes of the file with libmagic."""

    name = "libmagic"

    def available(self) -> bool:
        return magic is not None

    def detect(self, path: Path) -> Optional[str]:
        try:
            return magic.from_file(str(path), mime=True)
        except magic.MagicException as e:
            raise ValueError(str(e)) from e


class FileCommandDetector:
    """Runs ``file -i -b`` on the file."""

    name = "file-command"

    def __init__(self, command: str = "file"):
        self.command = command

    def _binary(self) -> Optional[str]:
        return shutil.which(self.command)

    def available(self) -> bool:
        return self._binary() is not None

    def detect(self, path: Path) -> Optional[str]:
        result = subprocess.run(
            [self._binary(), "-i", "-b", str(path)],
            capture_output=True,
            text=True,
            check=True,
            timeout=10,
        )
        # eg. "application/pdf; charset=binary"
        return result.stdout.split(";")[0].strip()


class ExtensionDetector:
    """Maps the file extension through a static table."""

    name = "extension"

    def __init__(self, table: Optional[dict] = None, default: str = DEFAULT_MIME_TYPE):
        self.table = EXTENSION_MIME_TYPES if table is None else table
        self.default = default

    def available(self) -> bool:
        return True

    def detect(self, path: Path) -> Optional[str]:
        return self.table.get(get_file_extension(path.name), self.default)


def default_detectors() -> List:
    return [LibmagicDetector(), FileCommandDetector(), ExtensionDetector()]


class ContentTypeDetector:
    """
    Runs a chain of detectors and returns the first answer.

    A detector that is unavailable, fails, or returns nothing hands over to
    the next one. If every detector gives up the default MIME type is used.
    """

    def __init__(self, detectors: Optional[Sequence] = None, default: str = DEFAULT_MIME_TYPE):
        self.detectors = list(default_detectors() if detectors is None else detectors)
        self.default = default

    def detect(self, path: Path) -> str:
        for detector in self.detectors:
            if not detector.available():
                continue
            try:
                mime = detector.detect(path)
            except (OSError, ValueError, subprocess.SubprocessError) as e:
                logger.warning("Content-type detector %s failed on %s: %s", detector.name, path, e)
                continue
            if mime:
                logger.debug("Detected %s for %s via %s", mime, path, detector.name)
                return mime
        return self.default
