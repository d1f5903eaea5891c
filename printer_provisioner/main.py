from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Callable, NoReturn, Optional, Sequence

from .config import ProvisionConfig, load_config
from .context import RunContext
from .errors import ConfigurationError
from .lib.bitness import REEXEC_FLAG, ensure_execution_context
from .lib.certstore import CertificateStore
from .lib.command import CommandRunner, run_cmd
from .lib.spooler import PrintSpooler
from .logging_utils import configure_logging, installation_log_path, reset_logging
from .models import InstallationRequest
from .pipeline import PipelineResult, run_pipeline
from .steps import (
    PlanPortStep,
    ProvisionPortStep,
    ReconcilePrinterStep,
    StageDriverStep,
    TrustCertificatesStep,
    ValidateInputsStep,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1


def build_steps():
    return [
        ValidateInputsStep(),
        TrustCertificatesStep(),
        PlanPortStep(),
        StageDriverStep(),
        ProvisionPortStep(),
        ReconcilePrinterStep(),
    ]


def _log_summary(ctx: RunContext, result: PipelineResult) -> None:
    logger.info("=== Summary for printer %r ===", ctx.request.printer_name)
    for r in result.results:
        logger.info("  %-24s %-8s %s", r.step_id, r.status.value, r.message)
    for step_id in result.skipped_steps:
        logger.info("  %-24s %-8s", step_id, "skipped")
    st = ctx.state
    if st.driver is not None:
        if st.driver.substituted_for:
            logger.info("  driver: %r (requested %r)", st.driver.driver_name, st.driver.substituted_for)
        else:
            logger.info("  driver: %r", st.driver.driver_name)
    if st.port is not None:
        logger.info("  port: %s (%s, %s)", st.port.name, st.port.kind.value, st.port.backing_ip)
    if st.printer is not None:
        logger.info("  printer: %r", st.printer.name)
    logger.info("Result: %s", "SUCCESS" if result.succeeded else "FAILED")


def run(
    request: InstallationRequest,
    *,
    source_dir: Path,
    config: Optional[ProvisionConfig] = None,
    spooler: Optional[PrintSpooler] = None,
    certstore: Optional[CertificateStore] = None,
    runner: CommandRunner = run_cmd,
    sleeper: Callable[[float], None] = time.sleep,
) -> PipelineResult:
    """Reconcile one printer to the requested state."""

    cfg = config if config is not None else ProvisionConfig()
    ctx = RunContext(
        request=request,
        config=cfg,
        source_dir=source_dir,
        spooler=spooler if spooler is not None else PrintSpooler(run=runner, powershell=cfg.powershell),
        certstore=certstore
        if certstore is not None
        else CertificateStore(
            run=runner,
            store_name=cfg.certificate_store,
            powershell=cfg.powershell,
            certutil=cfg.certutil,
        ),
        run=runner,
        sleeper=sleeper,
    )

    result = run_pipeline(ctx=ctx, steps=build_steps())
    _log_summary(ctx, result)
    return result


class _ArgumentParser(argparse.ArgumentParser):
    """Usage errors exit with the same code as any other failed run."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_FAILED, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    p = _ArgumentParser(prog="printer-provisioner")
    p.add_argument("--port-name", required=True, help="Port name; the advanced prefix (e.g. ADV_) requests a vendor port")
    p.add_argument("--printer-ip", required=True, help="Printer address, optionally with the advanced prefix")
    p.add_argument("--printer-name", required=True, help="Printer display name")
    p.add_argument("--driver-name", required=True, help="Driver display name as declared in the INF")
    p.add_argument("--inf-file", required=True, help="INF file name, relative to the source directory")
    p.add_argument("--source-dir", default=None, help="Directory holding the INF, catalogs and vendor tools")
    p.add_argument("--config", default=None, help="YAML config (default: printer_provisioner.yaml in source dir)")
    p.add_argument("--log-dir", default=None, help="Directory for <printer name>.log (default: temp dir)")
    p.add_argument("--verbose", action="store_true", help="Log command output")
    p.add_argument(REEXEC_FLAG, dest="reexecuted", action="store_true", help=argparse.SUPPRESS)
    return p


def main(argv: Optional[Sequence[str]] = None, *, source_dir: Optional[Path] = None) -> int:
    raw_argv = list(sys.argv[1:] if argv is None else argv)
    args = build_parser().parse_args(raw_argv)

    src = Path(args.source_dir) if args.source_dir else (source_dir or Path.cwd())
    log_path = configure_logging(
        installation_log_path(args.printer_name, args.log_dir),
        level=logging.DEBUG if args.verbose else logging.INFO,
    )
    try:
        if not args.source_dir:
            raw_argv += ["--source-dir", str(src)]
        handoff = ensure_execution_context(raw_argv, reexecuted=args.reexecuted)
        if handoff is not None:
            return handoff

        try:
            request = InstallationRequest(
                port_name=args.port_name,
                printer_ip=args.printer_ip,
                printer_name=args.printer_name,
                driver_name=args.driver_name,
                inf_file_name=args.inf_file,
            )
            config = load_config(args.config, source_dir=src)
        except ConfigurationError as e:
            logger.error("%s", e)
            print(f"Printer installation failed. See log: {log_path}", file=sys.stderr)
            return EXIT_FAILED

        result = run(request, source_dir=src, config=config)
        if not result.succeeded:
            print(f"Printer installation failed. See log: {log_path}", file=sys.stderr)
            return EXIT_FAILED
        return EXIT_OK
    finally:
        reset_logging()


def cli() -> None:
    raise SystemExit(main())
