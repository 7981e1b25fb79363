#!filepath: amtest/config/instance_config.py
from typing import List

from pydantic import BaseModel, Field


class InstanceConfig(BaseModel):
    """
    How managed instances are launched and talked to.
    """

    binary: str = "alertmanager"
    log_level: str = "debug"
    warmup: float = Field(0.1, ge=0)  # seconds to wait after launch
    shutdown_timeout: float = Field(5.0, ge=0)
    request_timeout: float = Field(5.0, gt=0)
    extra_args: List[str] = Field(default_factory=list)
