#!filepath: amtest/config/harness_config.py
import os

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .acceptance_config import AcceptanceOpts
from .instance_config import InstanceConfig
from .log_config import LogConfig

# env var -> (section, key)
ENV_OVERRIDES = {
    "AMTEST_BINARY": ("instance", "binary"),
    "AMTEST_LOG_LEVEL": ("log", "level"),
    "AMTEST_LOG_DIR": ("log", "dir"),
    "AMTEST_TOLERANCE": ("acceptance", "tolerance"),
}


class HarnessConfig(BaseModel):
    log: LogConfig = Field(default_factory=LogConfig)
    instance: InstanceConfig = Field(default_factory=InstanceConfig)
    acceptance: AcceptanceOpts = Field(default_factory=AcceptanceOpts)

    @classmethod
    def load(cls, path: str | None = None, env_file: str | None = None) -> "HarnessConfig":
        """
        Load YAML config + .env
        - no path: defaults only (plus env overrides)
        - explicit path that does not exist: FileNotFoundError
        - AMTEST_* env vars win over the file
        """
        load_dotenv(env_file or os.path.join(os.getcwd(), ".env"))

        raw: dict = {}
        if path is not None:
            if not os.path.exists(path):
                raise FileNotFoundError(f"Config file not found: {path}")
            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}

        for env, (section, key) in ENV_OVERRIDES.items():
            value = os.getenv(env)
            if value:
                raw.setdefault(section, {})[key] = value

        return cls(**raw)
