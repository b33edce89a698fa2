"""
Companion Agent Package

Local agent that brings its dependencies up (model runner, public tunnel,
hub registration) and republishes generated background images to
long-polling consumers.

Quick Start:
    python -m companion_agent            # uses CONFIG_PATH or ./config.yaml

Example:
    from companion_agent import CompanionRunner, load_config

    runner = CompanionRunner(config=load_config("config.yaml"))
    runner.run()
"""

from .config_loader import Config, load_config
from .context import AppContext
from .store import VersionedAssetStore
from .workflow import ReadinessWorkflow
from .main import CompanionRunner, main

__version__ = "1.0.0"

__all__ = [
    "Config",
    "load_config",
    "AppContext",
    "VersionedAssetStore",
    "ReadinessWorkflow",
    "CompanionRunner",
    "main",
]
