from __future__ import annotations

from typing import Sequence


class ProvisioningError(RuntimeError):
    """Base class for every failure the engine classifies."""


class ConfigurationError(ProvisioningError):
    """A required input is missing or malformed (e.g. the INF file)."""


class ToolInvocationError(ProvisioningError):
    """An external utility returned non-zero or could not be started."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        tool = self.argv[0] if self.argv else "<empty>"
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "no error output"
        super().__init__(f"{tool} failed ({returncode}): {detail}")


class CertificateStoreError(ProvisioningError):
    """A certificate could not be added to the trusted-publisher store."""


class DriverStagingError(ProvisioningError):
    """Every staging strategy failed and the driver is still absent."""


class StateVerificationError(ProvisioningError):
    """A post-condition check after a mutation did not hold."""
