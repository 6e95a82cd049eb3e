"""Exception hierarchy for dependency analysis and fixing"""

from typing import Optional, Sequence


class DepmenderError(Exception):
    """Base class for all errors raised by depmender"""


class ProjectNotFoundError(DepmenderError):
    """Project directory does not exist"""


class ManifestError(DepmenderError):
    """package.json is missing, unparsable or incomplete"""


class LockfileError(DepmenderError):
    """Lockfile is missing, unparsable or lacks required fields"""


class ConfigError(DepmenderError):
    """Configuration file could not be loaded"""


class DuplicateScannerError(DepmenderError):
    """A scanner of the same kind is already registered"""


class ScannerNotRegisteredError(DepmenderError):
    """A scanner kind was requested that the registry does not hold"""


class BackupError(DepmenderError):
    """Manifest backup could not be created or restored"""


class AdapterError(DepmenderError):
    """A package manager command failed"""

    def __init__(self, message: str, command: Optional[Sequence[str]] = None,
                 returncode: Optional[int] = None, stderr: str = ""):
        self.command = list(command) if command else []
        self.returncode = returncode
        self.stderr = stderr
        detail = message
        if stderr:
            # Keep only the tail, package manager output can be very long
            detail = f"{message}: {stderr.strip()[-500:]}"
        super().__init__(detail)
