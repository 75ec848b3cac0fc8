from __future__ import annotations
import os
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple
from .context import ProvisionContext
from .errors import ConflictError
from .models import ActionKind, DeclaredAction, PlanFile
from .package_manager import DEFAULT_FOR_PLATFORM

DEFAULT_FILE_MODE = 0o644
DEFAULT_RULE_MODE = 0o440
DEFAULT_RULE_CHECKER = "sudoers"

# later kinds may depend on earlier ones (a rule can reference a copied script)
_KIND_ORDER = {
    ActionKind.PACKAGE_INSTALL: 0,
    ActionKind.FILE_COPY: 1,
    ActionKind.PRIVILEGED_RULE_INSTALL: 2,
}

@dataclass(frozen=True)
class Action:
    name: str
    kind: ActionKind
    source: Optional[Path] = None
    destination: Optional[Path] = None
    package: Optional[str] = None
    permissions: Optional[int] = None
    validation_rule: Optional[str] = None
    sha256: Optional[str] = None
    fatal: bool = True
    verify_command: Optional[str] = None

    @property
    def target(self) -> str:
        return self.package if self.kind is ActionKind.PACKAGE_INSTALL else str(self.destination)

    def describe(self) -> str:
        if self.kind is ActionKind.PACKAGE_INSTALL:
            return f"install package {self.package}"
        mode = f" ({self.permissions:04o})" if self.permissions is not None else ""
        verb = "copy" if self.kind is ActionKind.FILE_COPY else f"install {self.validation_rule} rule"
        return f"{verb} {self.source} -> {self.destination}{mode}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "source": str(self.source) if self.source else None,
            "destination": str(self.destination) if self.destination else None,
            "package": self.package,
            "permissions": f"{self.permissions:04o}" if self.permissions is not None else None,
            "validation_rule": self.validation_rule,
            "verify_command": self.verify_command,
            "fatal": self.fatal,
        }

@dataclass(frozen=True)
class Plan:
    name: str
    actions: Tuple[Action, ...]
    description: str = ""
    platform: Optional[str] = None
    require_root: Optional[bool] = None
    package_manager: Optional[str] = None

    def __len__(self) -> int:
        return len(self.actions)

    def count(self, kind: ActionKind) -> int:
        return sum(1 for a in self.actions if a.kind is kind)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "platform": self.platform,
            "require_root": self.require_root,
            "package_manager": self.package_manager,
            "actions": [a.to_dict() for a in self.actions],
        }

@dataclass
class PlanGuards:
    platform: Optional[str] = None
    require_root: Optional[bool] = None
    package_manager: Optional[str] = None
    description: str = ""

def _normalize(path: Path) -> Path:
    return Path(os.path.normpath(str(path)))

def _to_action(name: str, decl: DeclaredAction, *, context: ProvisionContext, base_dir: Path) -> Action:
    if decl.kind is ActionKind.PACKAGE_INSTALL:
        return Action(name=name, kind=decl.kind, package=decl.package, fatal=decl.fatal,
                      verify_command=decl.verify_command)

    source = context.expand(decl.source)
    if not source.is_absolute():
        source = base_dir / source
    destination = context.expand(decl.destination)
    if not destination.is_absolute():
        destination = context.home / destination

    if decl.kind is ActionKind.FILE_COPY:
        mode = decl.permissions if decl.permissions is not None else DEFAULT_FILE_MODE
        rule = None
    else:
        mode = decl.permissions if decl.permissions is not None else DEFAULT_RULE_MODE
        rule = decl.validation_rule or DEFAULT_RULE_CHECKER

    return Action(
        name=name,
        kind=decl.kind,
        source=_normalize(source),
        destination=_normalize(destination),
        permissions=mode,
        validation_rule=rule,
        sha256=decl.sha256,
        fatal=decl.fatal,
    )

def _find_conflicts(actions: List[Action]) -> List[str]:
    by_target: Dict[Tuple[str, str], List[str]] = defaultdict(list)
    for a in actions:
        key = ("package", a.package) if a.kind is ActionKind.PACKAGE_INSTALL else ("path", str(a.destination))
        by_target[key].append(a.name)

    conflicts = []
    for (what, target), names in by_target.items():
        if len(names) > 1:
            label = "package" if what == "package" else "destination"
            conflicts.append(f"{label} {target} declared by {', '.join(names)}")
    return conflicts

def build_plan(name: str, declared: Mapping[str, DeclaredAction], *, context: ProvisionContext,
               base_dir: Path, guards: Optional[PlanGuards] = None) -> Plan:
    guards = guards or PlanGuards()
    actions = [_to_action(n, d, context=context, base_dir=base_dir) for n, d in declared.items()]

    conflicts = _find_conflicts(actions)
    if conflicts:
        raise ConflictError(conflicts)

    # sorted() is stable, so declaration order survives within a kind
    ordered = sorted(actions, key=lambda a: _KIND_ORDER[a.kind])

    package_manager = guards.package_manager or DEFAULT_FOR_PLATFORM.get(guards.platform or context.platform)
    return Plan(
        name=name,
        actions=tuple(ordered),
        description=guards.description,
        platform=guards.platform,
        require_root=guards.require_root,
        package_manager=package_manager,
    )

def build_from_file(name: str, plan_file: PlanFile, *, context: ProvisionContext, base_dir: Path) -> Plan:
    guards = PlanGuards(
        platform=plan_file.platform,
        require_root=plan_file.require_root,
        package_manager=plan_file.package_manager,
        description=plan_file.description,
    )
    return build_plan(name, plan_file.actions, context=context, base_dir=base_dir, guards=guards)
