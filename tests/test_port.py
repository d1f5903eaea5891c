"""Tests for port provisioning."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import ScriptedRunner
from printer_provisioner.errors import ToolInvocationError
from printer_provisioner.models import DriverRecord, DriverState, PortKind, PortRecord, PortSpec, PrinterRecord, VendorTool
from printer_provisioner.pipeline import StageStatus
from printer_provisioner.steps.step_40_provision_port import ProvisionPortStep


def _advanced(tool: VendorTool) -> PortSpec:
    return PortSpec(
        kind=PortKind.ADVANCED,
        resolved_ip="10.0.0.50",
        port_name="10.0.0.50",
        tool=tool,
        standard_name="IP_10.0.0.50",
    )


@pytest.fixture
def ctx(make_ctx, source_dir: Path):
    c = make_ctx()
    c.state.driver = DriverRecord(
        driver_name="Kyocera TASKalfa 3554ci KX",
        inf_path=source_dir / "OEMSETUP.INF",
        staged=True,
        registered=True,
        state=DriverState.REGISTERED,
    )
    return c


def test_standard_port_created(ctx, spooler) -> None:
    ctx.state.port_spec = PortSpec(kind=PortKind.STANDARD, resolved_ip="10.0.0.50", port_name="IP_10.0.0.50")

    result = ProvisionPortStep().run(ctx)

    assert result.status is StageStatus.SUCCESS
    assert spooler.mutations == [("add_tcpip_port", "IP_10.0.0.50", "10.0.0.50")]
    assert ctx.state.port == PortRecord("IP_10.0.0.50", PortKind.STANDARD, "10.0.0.50")


def test_existing_port_is_reused(ctx, spooler, runner) -> None:
    spooler.ports["10.0.0.50"] = PortRecord("10.0.0.50", PortKind.ADVANCED, "10.0.0.50")
    ctx.state.port_spec = _advanced(VendorTool.TOOL_A)

    result = ProvisionPortStep().run(ctx)

    assert result.status is StageStatus.SUCCESS
    assert spooler.mutations == []
    assert runner.calls == []
    assert ctx.state.port.kind is PortKind.ADVANCED


def test_tool_a_prestages_then_creates(ctx, spooler, runner, source_dir) -> None:
    ctx.state.port_spec = _advanced(VendorTool.TOOL_A)
    slept = []
    ctx.sleeper = slept.append

    result = ProvisionPortStep().run(ctx)

    assert result.status is StageStatus.SUCCESS
    prestage, create = runner.calls
    assert prestage[0] == str(source_dir / "AdvPortConfig.exe")
    assert prestage[1:] == ["/stagedriver", str(ctx.inf_path)]
    assert create[1:] == ["/addport", "/name:10.0.0.50", "/ip:10.0.0.50"]
    assert slept == [ctx.config.prestage_delay]
    assert ctx.state.port == PortRecord("10.0.0.50", PortKind.ADVANCED, "10.0.0.50")
    assert spooler.mutations == []


def test_tool_b_retries_alternate_syntax(ctx, spooler) -> None:
    ctx.state.port_spec = _advanced(VendorTool.TOOL_B)
    ctx.run = ScriptedRunner(lambda argv: 1 if "-createport" in argv else 0)

    result = ProvisionPortStep().run(ctx)

    assert result.status is StageStatus.SUCCESS
    assert len(ctx.run.calls) == 3
    assert ctx.run.calls[2][1:] == ["/create", "/port=10.0.0.50", "/host=10.0.0.50"]
    assert spooler.mutations == []


def test_advanced_failure_falls_back_to_standard(ctx, spooler) -> None:
    ctx.state.port_spec = _advanced(VendorTool.TOOL_B)
    ctx.run = ScriptedRunner(lambda argv: 0 if "-installdriver" in argv else 1)

    result = ProvisionPortStep().run(ctx)

    assert result.status is StageStatus.FALLBACK
    assert spooler.mutations == [("add_tcpip_port", "IP_10.0.0.50", "10.0.0.50")]
    assert ctx.state.port.kind is PortKind.STANDARD
    assert ctx.state.port.name == "IP_10.0.0.50"


def test_prestage_failure_falls_back_to_standard(ctx, spooler) -> None:
    ctx.state.port_spec = _advanced(VendorTool.TOOL_A)
    ctx.run = ScriptedRunner(lambda argv: 1)

    result = ProvisionPortStep().run(ctx)

    assert result.status is StageStatus.FALLBACK
    assert len(ctx.run.calls) == 1
    assert ctx.state.port.name == "IP_10.0.0.50"


def test_failing_port_query_after_tool_error_still_falls_back(ctx, spooler, monkeypatch) -> None:
    ctx.state.port_spec = _advanced(VendorTool.TOOL_A)
    ctx.run = ScriptedRunner(lambda argv: 1 if "/addport" in argv else 0)
    real_get_port = spooler.get_port

    def get_port(name):
        if name == "10.0.0.50" and ctx.run.calls and "/addport" in ctx.run.calls[-1]:
            raise ToolInvocationError(["powershell.exe"], 1, "unparseable JSON output")
        return real_get_port(name)

    monkeypatch.setattr(spooler, "get_port", get_port)

    result = ProvisionPortStep().run(ctx)

    assert result.status is StageStatus.FALLBACK
    assert ctx.state.port.name == "IP_10.0.0.50"
    assert spooler.mutations == [("add_tcpip_port", "IP_10.0.0.50", "10.0.0.50")]


def test_earlier_fallback_port_in_use_is_kept(ctx, spooler) -> None:
    spooler.ports["IP_10.0.0.50"] = PortRecord("IP_10.0.0.50", PortKind.STANDARD, "10.0.0.50")
    spooler.printers["Office Printer"] = PrinterRecord("Office Printer", "Kyocera TASKalfa 3554ci KX", "IP_10.0.0.50")
    ctx.state.port_spec = _advanced(VendorTool.TOOL_A)

    result = ProvisionPortStep().run(ctx)

    assert result.status is StageStatus.FALLBACK
    assert ctx.run.calls == []
    assert spooler.mutations == []
    assert ctx.state.port.name == "IP_10.0.0.50"


def test_unused_standard_port_does_not_block_advanced_retry(ctx, spooler) -> None:
    spooler.ports["IP_10.0.0.50"] = PortRecord("IP_10.0.0.50", PortKind.STANDARD, "10.0.0.50")
    ctx.state.port_spec = _advanced(VendorTool.TOOL_A)

    result = ProvisionPortStep().run(ctx)

    assert result.status is StageStatus.SUCCESS
    assert len(ctx.run.calls) == 2
    assert ctx.state.port.kind is PortKind.ADVANCED
