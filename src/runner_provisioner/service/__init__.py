"""
Provisioning Services

Admission queue, worker pool, lifecycle monitor, image resolver and
registration credential providers.
"""

from runner_provisioner.service.admission import AdmissionQueue
from runner_provisioner.service.credentials import (
    GitHubRegistrationTokenProvider,
    RegistrationTokenProvider,
    StaticTokenProvider,
)
from runner_provisioner.service.images import ImageResolver
from runner_provisioner.service.monitor import ExitOutcome, LifecycleMonitor, read_exit_code
from runner_provisioner.service.workers import WorkerPool

__all__ = [
    "AdmissionQueue",
    "GitHubRegistrationTokenProvider",
    "RegistrationTokenProvider",
    "StaticTokenProvider",
    "ImageResolver",
    "ExitOutcome",
    "LifecycleMonitor",
    "read_exit_code",
    "WorkerPool",
]
