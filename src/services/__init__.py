"""Application services.

- readiness: database startup gate (connectivity, schema, migrations, verification)
"""
from __future__ import annotations

from .readiness import (
    BootstrapOutcome,
    BootstrapStage,
    ConnectivityProbeResult,
    ReadinessOrchestrator,
    VerificationReport,
)

__all__ = [
    "BootstrapOutcome",
    "BootstrapStage",
    "ConnectivityProbeResult",
    "ReadinessOrchestrator",
    "VerificationReport",
]
