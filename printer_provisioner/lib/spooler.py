from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..models import PortKind, PortRecord, PrinterRecord
from .command import CommandRunner, ps_quote, run_cmd, run_powershell, run_powershell_json

logger = logging.getLogger(__name__)

# Port monitor behind built-in Standard TCP/IP ports.
STANDARD_PORT_MONITOR = "TCPMON.DLL"

_PRINTER_FIELDS = (
    "Name, DriverName, PortName, "
    "@{n='PrinterStatus';e={\"$($_.PrinterStatus)\"}}"
)
_PORT_FIELDS = "Name, PrinterHostAddress, PortMonitor, Description"


def _printer_from_json(obj: Dict[str, Any]) -> PrinterRecord:
    return PrinterRecord(
        name=str(obj.get("Name") or ""),
        driver_name=str(obj.get("DriverName") or ""),
        port_name=str(obj.get("PortName") or ""),
        status=str(obj.get("PrinterStatus") or ""),
    )


def _port_from_json(obj: Dict[str, Any]) -> PortRecord:
    monitor = str(obj.get("PortMonitor") or "")
    kind = PortKind.STANDARD if monitor.upper() in {"", STANDARD_PORT_MONITOR} else PortKind.ADVANCED
    return PortRecord(
        name=str(obj.get("Name") or ""),
        kind=kind,
        backing_ip=str(obj.get("PrinterHostAddress") or ""),
    )


class PrintSpooler:
    """Printer, port and driver objects, via the PrintManagement cmdlets.

    Queries return None / [] for absent objects. Mutations raise
    ToolInvocationError when the cmdlet fails.
    """

    def __init__(self, *, run: CommandRunner = run_cmd, powershell: str = "powershell.exe") -> None:
        self._run = run
        self._powershell = powershell

    def _query(self, script: str) -> List[Any]:
        return run_powershell_json(script, run=self._run, powershell=self._powershell)

    def _mutate(self, script: str) -> None:
        run_powershell(f"$ErrorActionPreference = 'Stop'; {script}", run=self._run, powershell=self._powershell)

    # Printers

    def get_printer(self, name: str) -> Optional[PrinterRecord]:
        rows = self._query(
            f"Get-Printer -Name {ps_quote(name)} -ErrorAction SilentlyContinue | "
            f"Select-Object {_PRINTER_FIELDS} | ConvertTo-Json -Compress"
        )
        return _printer_from_json(rows[0]) if rows else None

    def list_printers(self) -> List[PrinterRecord]:
        rows = self._query(f"Get-Printer | Select-Object {_PRINTER_FIELDS} | ConvertTo-Json -Compress")
        return [_printer_from_json(r) for r in rows]

    def add_printer(self, name: str, driver_name: str, port_name: str) -> None:
        self._mutate(
            f"Add-Printer -Name {ps_quote(name)} -DriverName {ps_quote(driver_name)} -PortName {ps_quote(port_name)}"
        )

    def remove_printer(self, name: str) -> None:
        self._mutate(f"Remove-Printer -Name {ps_quote(name)}")

    # Ports

    def get_port(self, name: str) -> Optional[PortRecord]:
        rows = self._query(
            f"Get-PrinterPort -Name {ps_quote(name)} -ErrorAction SilentlyContinue | "
            f"Select-Object {_PORT_FIELDS} | ConvertTo-Json -Compress"
        )
        return _port_from_json(rows[0]) if rows else None

    def add_tcpip_port(self, name: str, ip: str) -> None:
        self._mutate(f"Add-PrinterPort -Name {ps_quote(name)} -PrinterHostAddress {ps_quote(ip)}")

    # Drivers

    def list_drivers(self) -> List[str]:
        rows = self._query("Get-PrinterDriver | Select-Object Name | ConvertTo-Json -Compress")
        return [str(r.get("Name") or "") for r in rows if r.get("Name")]

    def has_driver(self, name: str) -> bool:
        rows = self._query(
            f"Get-PrinterDriver -Name {ps_quote(name)} -ErrorAction SilentlyContinue | "
            "Select-Object Name | ConvertTo-Json -Compress"
        )
        return bool(rows)

    def add_driver(self, name: str) -> None:
        self._mutate(f"Add-PrinterDriver -Name {ps_quote(name)}")
