"""
Post-deploy health verification.
"""

from .smoke import SmokeResult, run_smoke_check
from .verifier import HealthCheck, HealthReport, HealthVerifier

__all__ = ["SmokeResult", "run_smoke_check", "HealthCheck", "HealthReport", "HealthVerifier"]
