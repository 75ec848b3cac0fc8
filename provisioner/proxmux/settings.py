from __future__ import annotations
from pathlib import Path
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    plans_dir: Path = Field(default=Path("plans"), alias="PROXMUX_PLANS_DIR")
    log_dir: Optional[Path] = Field(default=None, alias="PROXMUX_LOG_DIR")
    log_level: str = Field(default="INFO", alias="PROXMUX_LOG_LEVEL")
    log_json: bool = Field(default=False, alias="PROXMUX_LOG_JSON")

    command_timeout: float = Field(default=10.0, gt=0, alias="PROXMUX_TIMEOUT")
    probe_host: str = Field(default="8.8.8.8", alias="PROXMUX_PROBE_HOST")
    assume_yes: bool = Field(default=False, alias="PROXMUX_ASSUME_YES")

    # overrides the invoking user's home when resolving "~" in destinations
    home: Optional[Path] = Field(default=None, alias="PROXMUX_HOME")

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)
