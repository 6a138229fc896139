"""Typed exception hierarchy for secureapk."""


class SecureAPKError(Exception):
    """Base exception for all secureapk errors."""

    pass


class ToolNotFoundError(SecureAPKError):
    """Raised when a required external tool is not installed."""

    def __init__(self, tool: str, install_hint: str | None = None):
        self.tool = tool
        self.install_hint = install_hint
        message = f"Required tool not found: {tool}"
        if install_hint:
            message += f"\nInstall: {install_hint}"
        super().__init__(message)


class ProcessError(SecureAPKError):
    """Raised when a subprocess command fails."""

    def __init__(self, command: list[str], returncode: int, stderr: str):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        cmd_str = " ".join(command)
        super().__init__(f"Command failed (exit {returncode}): {cmd_str}\n{stderr}")


class ArchiveError(SecureAPKError):
    """Raised when the package archive cannot be opened or read."""

    pass


class ManifestMissingError(SecureAPKError):
    """Raised when no usable AndroidManifest.xml exists in the extraction root."""

    pass


class DetectorError(SecureAPKError):
    """Raised when a security check cannot complete."""

    def __init__(self, category: str, cause: BaseException):
        self.category = category
        self.cause = cause
        super().__init__(f"Check '{category}' failed: {cause}")


class RepackagingError(SecureAPKError):
    """Raised when the dev-mode archive cannot be built."""

    pass


class APKAlignError(SecureAPKError):
    """Raised when APK alignment with zipalign fails."""

    pass


class APKSignError(SecureAPKError):
    """Raised when APK signing fails."""

    pass


class KeystoreError(APKSignError):
    """Raised when the signing keystore cannot be provisioned."""

    pass


class CleanupError(SecureAPKError):
    """Raised when a scratch directory cannot be removed."""

    pass


class JobCancelledError(SecureAPKError):
    """Raised when the caller abandons a job mid-flight."""

    pass


class JobNotFoundError(SecureAPKError):
    """Raised when a job id is unknown to the store."""

    def __init__(self, job_id: int):
        self.job_id = job_id
        super().__init__(f"No analysis job with id {job_id}")
