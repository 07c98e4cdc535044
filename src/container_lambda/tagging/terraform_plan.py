"""
Inspect tag changes in a Terraform plan.

Works on the JSON document written by ``terraform show -json <planfile>``.
Only the AWS provider is considered: its ``default_tags`` block is merged by
the provider into ``tags_all`` of every resource, so resource-level ``tags``
that repeat a default key with another value show up as a change on every
plan.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from ..errors import DeploymentError
from ..utils.logger import get_logger
from .policy import Tags, TagCollision, TagPolicy, TagViolation, find_collisions, merge_tags

logger = get_logger(__name__)

TAGGED_ACTIONS = {"create", "update"}


class TagChange(BaseModel):
    """Tags of one resource before and after the plan is applied."""

    address: str
    actions: List[str] = Field(default_factory=list)
    before: Tags = Field(default_factory=dict)
    after: Tags = Field(default_factory=dict)
    tags_only: bool = False

    @property
    def added(self) -> Tags:
        return {k: v for k, v in self.after.items() if k not in self.before}

    @property
    def removed(self) -> List[str]:
        return sorted(k for k in self.before if k not in self.after)

    @property
    def modified(self) -> Dict[str, Dict[str, str]]:
        return {
            k: {"before": self.before[k], "after": v}
            for k, v in self.after.items()
            if k in self.before and self.before[k] != v
        }


class ResourceCollision(BaseModel):
    address: str
    collisions: List[TagCollision]


def load_plan(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a plan exported with ``terraform show -json``.

    Raises:
        DeploymentError: if the file cannot be read or is not valid JSON.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            plan = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to load plan {path}: {e}")
        raise DeploymentError(f"Failed to load plan {path}", details={"error": str(e)}) from e
    logger.info(f"Loaded plan {path} (format {plan.get('format_version', 'unknown')})")
    return plan


def _as_tags(value: Any) -> Tags:
    # null, unknown and non-string values are treated as absent
    if not isinstance(value, dict):
        return {}
    return {str(k): v for k, v in value.items() if isinstance(v, str)}


def _resource_tags(state: Optional[Dict[str, Any]]) -> Tags:
    if not state:
        return {}
    return _as_tags(state.get("tags_all")) or _as_tags(state.get("tags"))


def _without_tags(state: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {k: v for k, v in (state or {}).items() if k not in ("tags", "tags_all")}


def extract_tag_changes(plan: Dict[str, Any]) -> List[TagChange]:
    """
    List resources whose tags change in the plan.

    Args:
        plan: Plan JSON document

    Returns:
        One TagChange per resource whose ``tags``/``tags_all`` differ.
    """
    changes = []
    for resource in plan.get("resource_changes") or []:
        change = resource.get("change") or {}
        before_state = change.get("before")
        after_state = change.get("after")

        before = _resource_tags(before_state)
        after = _resource_tags(after_state)
        if before == after:
            continue

        tags_only = bool(before_state) and bool(after_state) and (
            _without_tags(before_state) == _without_tags(after_state)
        )
        changes.append(
            TagChange(
                address=resource.get("address", ""),
                actions=list(change.get("actions") or []),
                before=before,
                after=after,
                tags_only=tags_only,
            )
        )

    logger.info(f"Found {len(changes)} resources with tag changes")
    return changes


def get_default_tags(plan: Dict[str, Any], provider: str = "aws") -> Tags:
    """Constant ``default_tags`` configured on the provider block."""
    provider_config = (plan.get("configuration") or {}).get("provider_config") or {}
    expressions = (provider_config.get(provider) or {}).get("expressions") or {}

    tags: Tags = {}
    for block in expressions.get("default_tags") or []:
        tag_expr = (block or {}).get("tags") or {}
        tags.update(_as_tags(tag_expr.get("constant_value")))
    return tags


def find_default_tag_collisions(plan: Dict[str, Any], provider: str = "aws") -> List[ResourceCollision]:
    """
    Resources whose own ``tags`` override a provider default tag.

    Args:
        plan: Plan JSON document
        provider: Provider configuration key

    Returns:
        Collisions grouped by resource address.
    """
    default_tags = get_default_tags(plan, provider)
    if not default_tags:
        return []

    results = []
    for resource in plan.get("resource_changes") or []:
        after = (resource.get("change") or {}).get("after")
        if not after:
            continue
        collisions = find_collisions(default_tags, _as_tags(after.get("tags")))
        if collisions:
            results.append(ResourceCollision(address=resource.get("address", ""), collisions=collisions))

    for result in results:
        keys = ", ".join(c.key for c in result.collisions)
        logger.warning(f"{result.address} overrides default tags: {keys}")
    return results


def validate_plan_tags(plan: Dict[str, Any], policy: TagPolicy) -> List[TagViolation]:
    """
    Validate planned tags of every created or updated taggable resource.

    ``tags_all`` is unknown until apply for new resources; the provider
    default tags are merged into ``tags`` in that case.
    """
    default_tags = get_default_tags(plan)
    violations: List[TagViolation] = []
    for resource in plan.get("resource_changes") or []:
        change = resource.get("change") or {}
        actions = set(change.get("actions") or [])
        after = change.get("after")
        if not after or not actions & TAGGED_ACTIONS:
            continue
        if "tags" not in after and "tags_all" not in after:
            continue
        tags = _as_tags(after.get("tags_all")) or merge_tags(default_tags, _as_tags(after.get("tags")))
        violations.extend(policy.validate_tags(tags, resource=resource.get("address", "")))
    return violations
