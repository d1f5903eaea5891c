from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Sequence, Set

from ..context import RunContext
from ..errors import CertificateStoreError, ToolInvocationError
from ..lib.certstore import is_vendor_trusted
from ..lib.convergence import wait_until
from ..models import CertificateRecord
from ..pipeline import StageResult

logger = logging.getLogger(__name__)


def find_certificate_files(directory: Path, patterns: Sequence[str]) -> List[Path]:
    """Catalog and certificate files below ``directory``, each once, sorted."""

    found: Set[Path] = set()
    for pattern in patterns:
        found.update(p for p in directory.rglob(pattern) if p.is_file())
    return sorted(found)


class TrustCertificatesStep:
    """Trust third-party driver signers so driver staging does not prompt."""

    step_id = "10_trust_certificates"

    def run(self, ctx: RunContext) -> StageResult:
        cfg = ctx.config
        store = ctx.certstore
        files = find_certificate_files(ctx.inf_path.parent, cfg.certificate_patterns)
        if not files:
            logger.info("No catalog or certificate files next to the driver; nothing to trust")
            return StageResult.success(self.step_id, "no certificate files")

        seen: Set[str] = set()
        added: List[CertificateRecord] = []
        failures: List[str] = []

        for path in files:
            try:
                cert = store.read_signer(path)
            except ToolInvocationError as e:
                logger.warning("Skipping %s: signature inspection failed (%s)", path.name, e)
                continue
            if cert is None:
                logger.info("Skipping %s: no signature or signer certificate", path.name)
                continue

            logger.info(
                "%s: subject=%r issuer=%r thumbprint=%s", path.name, cert.subject, cert.issuer, cert.thumbprint
            )
            if cert.thumbprint in seen:
                logger.info("Certificate %s already handled in this run", cert.thumbprint)
                continue
            seen.add(cert.thumbprint)

            if is_vendor_trusted(cert, cfg.vendor_markers):
                logger.info("Certificate %s is signed by the OS vendor; implicitly trusted", cert.thumbprint)
                continue

            if store.is_trusted(cert.thumbprint):
                logger.info("Certificate %s already in %s", cert.thumbprint, store.store_name)
                ctx.state.certificates.append(replace(cert, trusted=True))
                continue

            try:
                strategy = store.install(cert)
            except CertificateStoreError as e:
                logger.warning("%s; continuing without it (driver install may prompt)", e)
                failures.append(cert.thumbprint)
                ctx.state.certificates.append(cert)
                continue

            logger.info("Added certificate %s to %s via %s", cert.thumbprint, store.store_name, strategy)
            added.append(cert)
            ctx.state.certificates.append(replace(cert, trusted=True))

        ctx.state.certificates_added = len(added)

        if added:
            # Store writes show up asynchronously; driver staging must see them.
            wait_until(
                lambda: all(store.is_trusted(c.thumbprint) for c in added),
                timeout=cfg.certificate_timeout,
                interval=cfg.poll_interval,
                description="added certificates to become visible",
                sleeper=ctx.sleeper,
                clock=ctx.clock,
            )

        summary = f"{len(added)} certificate(s) added, {len(failures)} failed"
        logger.info("Certificate trust: %s", summary)
        if failures:
            return StageResult.fallback(self.step_id, summary)
        return StageResult.success(self.step_id, summary)
