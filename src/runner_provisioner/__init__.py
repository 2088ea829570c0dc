"""
Runner Provisioner

Provisions ephemeral GitHub Actions self-hosted runner containers on a local
Podman or Docker engine in response to workflow_job webhooks.
"""

__version__ = "1.0.0"
