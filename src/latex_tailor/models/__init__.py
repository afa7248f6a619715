"""Data models for the LaTeX tailoring pipeline."""

from latex_tailor.models.admission import AdmissionDecision, TopUpPlan
from latex_tailor.models.caller import Caller, CallerRole, ProviderCredentials
from latex_tailor.models.evaluation import Evaluation
from latex_tailor.models.round import Round

__all__ = [
    "AdmissionDecision",
    "Caller",
    "CallerRole",
    "Evaluation",
    "ProviderCredentials",
    "Round",
    "TopUpPlan",
]
