"""Schema normalization of loaded workflow documents."""

from wfreview.normalizer.engine import normalize
from wfreview.normalizer.models import Job, NormalizedDocument, SecretRef, SecretScope, Step, Trigger

__all__ = [
    "Job",
    "NormalizedDocument",
    "SecretRef",
    "SecretScope",
    "Step",
    "Trigger",
    "normalize",
]
