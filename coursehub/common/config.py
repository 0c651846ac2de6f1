"""Approval catalog configuration.

Loads course categories, approver roles and their approval chains from a
YAML file. Example::

    roles:
      - name: Training Manager
        applies_to_all_organizations: true
    categories:
      - name: Leadership Programs
        excuse_window_hours: 24
        approvals:
          - head: true
          - role: Training Manager
            final: true

Steps without an explicit ``order`` are numbered by their position.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


@dataclass
class RoleConfig:
    """An approver role referenced by approval chains."""

    name: str
    applies_to_all_organizations: bool = False
    organization_id: Optional[str] = None


@dataclass
class ApprovalStepConfig:
    order: int
    head: bool = False
    role: Optional[str] = None
    final: bool = False


@dataclass
class CategoryConfig:
    """A course category and its approval chain."""

    name: str
    excuse_window_hours: Optional[int] = None
    organization_id: Optional[str] = None
    approvals: List[ApprovalStepConfig] = field(default_factory=list)


@dataclass
class CatalogConfig:
    """Top-level approval catalog."""

    roles: List[RoleConfig] = field(default_factory=list)
    categories: List[CategoryConfig] = field(default_factory=list)

    def role_names(self) -> List[str]:
        return [role.name for role in self.roles]


def parse_role_config(role_dict: Dict[str, Any]) -> RoleConfig:
    """Parse a role configuration dictionary.

    Args:
        role_dict: Role configuration dictionary

    Returns:
        RoleConfig instance
    """
    if not role_dict.get("name"):
        raise ValueError("Role configuration requires a name")
    return RoleConfig(
        name=role_dict["name"],
        applies_to_all_organizations=bool(role_dict.get("applies_to_all_organizations", False)),
        organization_id=role_dict.get("organization_id"),
    )


def parse_step_config(step_dict: Dict[str, Any], position: int) -> ApprovalStepConfig:
    """Parse one approval step.

    Args:
        step_dict: Step configuration dictionary
        position: 1-based position of the step in its chain

    Returns:
        ApprovalStepConfig instance
    """
    return ApprovalStepConfig(
        order=int(step_dict.get("order", position)),
        head=bool(step_dict.get("head", False)),
        role=step_dict.get("role"),
        final=bool(step_dict.get("final", False)),
    )


def parse_category_config(category_dict: Dict[str, Any]) -> CategoryConfig:
    """Parse a category configuration dictionary.

    Args:
        category_dict: Category configuration dictionary

    Returns:
        CategoryConfig instance
    """
    if not category_dict.get("name"):
        raise ValueError("Category configuration requires a name")

    approvals = [
        parse_step_config(step_dict, position)
        for position, step_dict in enumerate(category_dict.get("approvals") or [], start=1)
    ]

    window = category_dict.get("excuse_window_hours")
    return CategoryConfig(
        name=category_dict["name"],
        excuse_window_hours=int(window) if window is not None else None,
        organization_id=category_dict.get("organization_id"),
        approvals=approvals,
    )


def parse_config(config_dict: Dict[str, Any]) -> CatalogConfig:
    """Parse the full catalog dictionary.

    Raises:
        ValueError: If a step references a role the catalog does not define
    """
    roles = [parse_role_config(r) for r in config_dict.get("roles") or []]
    categories = [parse_category_config(c) for c in config_dict.get("categories") or []]

    known = {role.name for role in roles}
    for category in categories:
        for step in category.approvals:
            if step.role and step.role not in known:
                raise ValueError(
                    f"Category {category.name!r} step {step.order} references unknown role {step.role!r}"
                )

    return CatalogConfig(roles=roles, categories=categories)


def load_config(config_path: str) -> Dict[str, Any]:
    """Load the catalog from a YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_file.open("r") as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise TypeError(
            f"Configuration root must be a mapping, got {type(config).__name__}"
        )

    return _expand_env_vars(config)


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in configuration."""
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    else:
        return obj


def load_typed_config(config_path: str) -> CatalogConfig:
    """Load and parse the catalog into typed dataclasses."""
    return parse_config(load_config(config_path))
