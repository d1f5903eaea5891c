from .step_00_validate_inputs import ValidateInputsStep
from .step_10_trust_certificates import TrustCertificatesStep
from .step_20_plan_port import PlanPortStep
from .step_30_stage_driver import StageDriverStep
from .step_40_provision_port import ProvisionPortStep
from .step_50_reconcile_printer import ReconcilePrinterStep

__all__ = [
    "ValidateInputsStep",
    "TrustCertificatesStep",
    "PlanPortStep",
    "StageDriverStep",
    "ProvisionPortStep",
    "ReconcilePrinterStep",
]
