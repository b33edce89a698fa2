"""
Tools module for the companion agent.

Provides:
- Fixed-delay polling shared by every readiness gate
- Model runner client and provisioning
- Tunnel container launcher and log pattern watcher
- Hub registration client
- Image generation client
"""

from .retry import poll_until
from .log_watcher import LogPatternWatcher, read_combined_output
from .model_runner import ModelRunnerClient, inventory_tags, missing_models
from .provisioning import ModelProvisioner
from .tunnel import DockerTunnelLauncher, DockerTunnelProcess, TunnelSession
from .hub_client import HubClient
from .image_client import ImageGenerationClient, extract_base64_image

__all__ = [
    "poll_until",
    "LogPatternWatcher",
    "read_combined_output",
    "ModelRunnerClient",
    "inventory_tags",
    "missing_models",
    "ModelProvisioner",
    "DockerTunnelLauncher",
    "DockerTunnelProcess",
    "TunnelSession",
    "HubClient",
    "ImageGenerationClient",
    "extract_base64_image",
]
