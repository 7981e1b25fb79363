from .acceptance_config import AcceptanceOpts
from .harness_config import HarnessConfig
from .instance_config import InstanceConfig
from .log_config import LogConfig

__all__ = ["AcceptanceOpts", "HarnessConfig", "InstanceConfig", "LogConfig"]
