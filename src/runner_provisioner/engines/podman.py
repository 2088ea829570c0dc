"""
Podman Engine Client

Talks to Podman through its Docker-compatible API (rootful or rootless socket).
"""

from docker.errors import APIError

from runner_provisioner.contracts.types import EngineKind
from runner_provisioner.engines.docker import DockerEngineClient


class PodmanEngineClient(DockerEngineClient):
    """
    Podman client.

    Podman reports errors as {"cause": ..., "message": ..., "response": ...}
    and the exit code of dead containers under "containerExitCode".
    """

    kind = EngineKind.PODMAN

    def _error_message(self, error: APIError) -> str:
        response = error.response
        if response is not None:
            try:
                data = response.json()
            except ValueError:
                data = None
            if isinstance(data, dict) and data.get("cause") and data.get("message"):
                if data["cause"] not in data["message"]:
                    return f"{data['message']} (cause: {data['cause']})"
        return super()._error_message(error)
