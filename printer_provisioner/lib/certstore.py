from __future__ import annotations

import base64
import logging
import tempfile
from pathlib import Path
from typing import Optional, Sequence

from ..errors import CertificateStoreError
from ..models import CertificateRecord
from .command import CmdResult, CommandRunner, ps_quote, run_cmd, run_powershell, run_powershell_json
from .strategies import Strategy, run_strategies

logger = logging.getLogger(__name__)

# Files that are certificates themselves rather than signed content.
CERTIFICATE_SUFFIXES = {".cer", ".crt"}

_X509 = "System.Security.Cryptography.X509Certificates"

_EMIT_CERT = (
    "if ($c) { [pscustomobject]@{"
    "Thumbprint=$c.Thumbprint; Subject=$c.Subject; Issuer=$c.Issuer; "
    "RawData=[Convert]::ToBase64String($c.RawData)"
    "} | ConvertTo-Json -Compress }"
)


def is_vendor_trusted(cert: CertificateRecord, markers: Sequence[str]) -> bool:
    """True when the OS vendor signed it; those are implicitly trusted."""
    subject = cert.subject.casefold()
    issuer = cert.issuer.casefold()
    return any(m.casefold() in subject or m.casefold() in issuer for m in markers if m)


class CertificateStore:
    """Signature inspection and the machine trusted-publisher store."""

    def __init__(
        self,
        *,
        run: CommandRunner = run_cmd,
        store_name: str = "TrustedPublisher",
        powershell: str = "powershell.exe",
        certutil: str = "certutil.exe",
    ) -> None:
        self._run = run
        self.store_name = store_name
        self._powershell = powershell
        self._certutil = certutil

    def read_signer(self, path: Path) -> Optional[CertificateRecord]:
        """Return the signer certificate of ``path``, or None if it has none."""

        if path.suffix.lower() in CERTIFICATE_SUFFIXES:
            script = f"$c = New-Object {_X509}.X509Certificate2({ps_quote(str(path))}); {_EMIT_CERT}"
        else:
            script = (
                f"$c = (Get-AuthenticodeSignature -FilePath {ps_quote(str(path))}).SignerCertificate; {_EMIT_CERT}"
            )
        rows = run_powershell_json(script, run=self._run, powershell=self._powershell)
        if not rows or not rows[0].get("Thumbprint"):
            return None
        row = rows[0]
        return CertificateRecord(
            thumbprint=str(row["Thumbprint"]),
            subject=str(row.get("Subject") or ""),
            issuer=str(row.get("Issuer") or ""),
            source=path,
            der=base64.b64decode(row.get("RawData") or ""),
        )

    def is_trusted(self, thumbprint: str) -> bool:
        r = run_powershell(
            f"Test-Path {ps_quote(f'Cert:/LocalMachine/{self.store_name}/{thumbprint}')}",
            run=self._run,
            check=False,
            powershell=self._powershell,
        )
        return r.ok and r.stdout.strip().lower() == "true"

    def add_via_store_handle(self, cert: CertificateRecord) -> CmdResult:
        raw = base64.b64encode(cert.der).decode("ascii")
        script = (
            "$ErrorActionPreference = 'Stop'; "
            f"$c = New-Object {_X509}.X509Certificate2(,[Convert]::FromBase64String({ps_quote(raw)})); "
            f"$s = New-Object {_X509}.X509Store({ps_quote(self.store_name)}, 'LocalMachine'); "
            "$s.Open('ReadWrite'); try { $s.Add($c) } finally { $s.Close() }"
        )
        return run_powershell(script, run=self._run, check=False, powershell=self._powershell)

    def add_via_certutil(self, cert: CertificateRecord) -> CmdResult:
        if not cert.der:
            raise CertificateStoreError(f"No certificate data to export for {cert.thumbprint}")

        with tempfile.NamedTemporaryFile(prefix="cert-", suffix=".cer", delete=False) as fh:
            fh.write(cert.der)
            tmp = Path(fh.name)
        try:
            return self._run([self._certutil, "-f", "-addstore", self.store_name, str(tmp)], check=False)
        finally:
            tmp.unlink(missing_ok=True)

    def install(self, cert: CertificateRecord) -> str:
        """Add ``cert`` to the store; returns the strategy that worked."""

        result = run_strategies(
            [
                Strategy("store-handle", lambda: self.add_via_store_handle(cert)),
                Strategy("certutil", lambda: self.add_via_certutil(cert)),
            ],
            label=f"certificate {cert.thumbprint}",
        )
        if not result.succeeded:
            raise CertificateStoreError(
                f"Could not add {cert.thumbprint} to {self.store_name}: {result.last_reason}"
            )
        return result.winner or ""
