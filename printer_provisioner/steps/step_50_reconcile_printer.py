from __future__ import annotations

import logging
from typing import Optional

from ..context import RunContext
from ..errors import ProvisioningError, StateVerificationError
from ..lib.convergence import wait_until
from ..models import PrinterRecord, PrinterState
from ..pipeline import StageResult

logger = logging.getLogger(__name__)


def classify_printer(existing: Optional[PrinterRecord], driver_name: str, port_name: str) -> PrinterState:
    if existing is None:
        return PrinterState.ABSENT
    if existing.matches(driver_name, port_name):
        return PrinterState.PRESENT_MATCHING
    return PrinterState.PRESENT_DIVERGENT


class ReconcilePrinterStep:
    """Create, replace or leave the printer object, then verify it."""

    step_id = "50_reconcile_printer"

    def _note_neighbours(self, ctx: RunContext, name: str, driver_name: str, port_name: str) -> None:
        others = [p for p in ctx.spooler.list_printers() if p.name.casefold() != name.casefold()]
        for p in others:
            if p.port_name.casefold() == port_name.casefold():
                logger.info("Printer %r also uses port %s (shared ports are fine)", p.name, port_name)
            if p.driver_name.casefold() == driver_name.casefold():
                logger.info("Printer %r also uses driver %r", p.name, driver_name)

    def _verify(self, ctx: RunContext, name: str, driver_name: str, port_name: str) -> PrinterRecord:
        actual = ctx.spooler.get_printer(name)
        if actual is None:
            raise StateVerificationError(f"Printer {name!r} not found after creation")
        if not actual.matches(driver_name, port_name):
            raise StateVerificationError(
                f"Printer {name!r} has driver={actual.driver_name!r} port={actual.port_name!r}, "
                f"expected driver={driver_name!r} port={port_name!r}"
            )
        logger.info("Verified printer %r: driver=%r port=%s", name, actual.driver_name, actual.port_name)
        return actual

    def run(self, ctx: RunContext) -> StageResult:
        if ctx.state.driver is None or ctx.state.port is None:
            raise ProvisioningError("Driver or port missing; earlier steps did not complete")

        spooler = ctx.spooler
        name = ctx.request.printer_name
        driver_name = ctx.state.driver.driver_name
        port_name = ctx.state.port.name

        existing = spooler.get_printer(name)
        state = classify_printer(existing, driver_name, port_name)
        logger.info("Printer %r state: %s", name, state.value)

        if state is PrinterState.PRESENT_MATCHING:
            logger.info("Printer %r already uses driver %r on port %s; no changes needed", name, driver_name, port_name)
            ctx.state.printer = existing
            return StageResult.success(self.step_id, "no changes needed")

        if existing is not None and state is PrinterState.PRESENT_DIVERGENT:
            logger.info(
                "Replacing printer %r (driver %r -> %r, port %s -> %s)",
                name,
                existing.driver_name,
                driver_name,
                existing.port_name,
                port_name,
            )
            spooler.remove_printer(name)
            # The spooler finishes removal asynchronously.
            wait_until(
                lambda: spooler.get_printer(name) is None,
                timeout=ctx.config.removal_timeout,
                interval=ctx.config.poll_interval,
                description=f"printer {name!r} to be removed",
                sleeper=ctx.sleeper,
                clock=ctx.clock,
            )

        try:
            self._note_neighbours(ctx, name, driver_name, port_name)
        except ProvisioningError as e:
            logger.warning("Could not list other printers: %s", e)
        spooler.add_printer(name, driver_name, port_name)
        logger.info("Created printer %r", name)

        ctx.state.printer = self._verify(ctx, name, driver_name, port_name)
        action = "replaced" if state is PrinterState.PRESENT_DIVERGENT else "created"
        return StageResult.success(self.step_id, f"printer {action}")
