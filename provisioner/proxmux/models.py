from __future__ import annotations
from enum import Enum
from typing import Dict, Optional, Union
from pydantic import BaseModel, Field, field_validator, model_validator


class ActionKind(str, Enum):
    PACKAGE_INSTALL = "package_install"
    FILE_COPY = "file_copy"
    PRIVILEGED_RULE_INSTALL = "privileged_rule_install"


def _parse_mode(value: Union[str, int, None]) -> Optional[int]:
    # JSON has no octal literals: "0644", "644" and "0o644" all mean rw-r--r--
    if value is None or isinstance(value, int):
        return value
    text = value.strip().lower()
    if text.startswith("0o"):
        text = text[2:]
    try:
        mode = int(text, 8)
    except ValueError:
        raise ValueError(f"permissions must be octal, got {value!r}")
    if not 0 <= mode <= 0o7777:
        raise ValueError(f"permissions out of range: {value!r}")
    return mode


class DeclaredAction(BaseModel):
    kind: ActionKind
    source: Optional[str] = Field(default=None, description="Path relative to the plan file or absolute")
    destination: Optional[str] = Field(default=None, description="Target path; a leading ~ means the context home")
    package: Optional[str] = None
    verify_command: Optional[str] = Field(default=None, description="Command that must be on PATH after installing")
    permissions: Optional[int] = None
    validation_rule: Optional[str] = Field(default=None, description="Syntax checker for privileged rules")
    sha256: Optional[str] = Field(default=None, description="Expected checksum of the source file")
    fatal: bool = Field(default=True, description="If false: a failure is recorded and the run continues")

    @field_validator("permissions", mode="before")
    @classmethod
    def _octal(cls, v):
        return _parse_mode(v)

    @field_validator("sha256")
    @classmethod
    def _hex(cls, v):
        if v is None:
            return v
        v = v.strip().lower()
        if len(v) != 64 or any(c not in "0123456789abcdef" for c in v):
            raise ValueError("sha256 must be 64 hex characters")
        return v

    @model_validator(mode="after")
    def _fields_for_kind(self) -> "DeclaredAction":
        if self.kind is ActionKind.PACKAGE_INSTALL:
            if not self.package:
                raise ValueError("package_install needs 'package'")
            if self.source or self.destination:
                raise ValueError("package_install takes no source/destination")
        else:
            if not self.source or not self.destination:
                raise ValueError(f"{self.kind.value} needs 'source' and 'destination'")
            if self.package or self.verify_command:
                raise ValueError(f"{self.kind.value} takes no 'package' or 'verify_command'")
        return self


class PlanFile(BaseModel):
    description: str = ""
    platform: Optional[str] = Field(default=None, pattern=r"^(linux|macos)$")
    require_root: Optional[bool] = Field(default=None, description="true: must run as root, false: must not")
    package_manager: Optional[str] = None
    actions: Dict[str, DeclaredAction] = Field(default_factory=dict)
