"""
Tag policy: required keys, allowed values and key naming convention.

Tags are handled as plain ``dict`` objects mapping key to value. Lambda and
ECR ``tag_resource`` accept that form directly, while IAM, ECR
``create_repository`` and the Resource Groups Tagging API use a list of
``{"Key": ..., "Value": ...}`` entries; ``to_aws_tag_list`` and
``from_aws_tag_list`` convert between the two.
"""

from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from ..tag_keys import KEY_STYLE_PATTERNS, canonical_key, normalize_key, split_words

Tags = Dict[str, str]

MAX_KEY_LENGTH = 128
MAX_VALUE_LENGTH = 256
RESERVED_PREFIX = "aws:"

VIOLATION_KINDS = (
    "missing",
    "invalid_value",
    "bad_key_style",
    "empty_value",
    "too_long",
    "reserved_prefix",
    "case_duplicate",
)

__all__ = [
    "Tags",
    "TagViolation",
    "TagCollision",
    "TagPolicy",
    "split_words",
    "normalize_key",
    "canonical_key",
    "merge_tags",
    "find_collisions",
    "find_redundant",
    "to_aws_tag_list",
    "from_aws_tag_list",
]


class TagViolation(BaseModel):
    """A single tag rule broken by a resource."""

    resource: str = ""
    key: str
    kind: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return self.model_dump()


class TagCollision(BaseModel):
    """A key set at both provider and resource level with different values."""

    key: str
    provider_value: str
    resource_value: str


def merge_tags(default_tags: Optional[Tags], resource_tags: Optional[Tags]) -> Tags:
    """Merge provider-level default tags with resource tags. Resource wins."""
    merged = dict(default_tags or {})
    merged.update(resource_tags or {})
    return merged


def find_collisions(default_tags: Optional[Tags], resource_tags: Optional[Tags]) -> List[TagCollision]:
    """
    Keys present at both levels with different values.

    These make the infrastructure plan show a change on every run.
    """
    default_tags = default_tags or {}
    collisions = []
    for key, value in sorted((resource_tags or {}).items()):
        if key in default_tags and default_tags[key] != value:
            collisions.append(
                TagCollision(key=key, provider_value=default_tags[key], resource_value=value)
            )
    return collisions


def find_redundant(default_tags: Optional[Tags], resource_tags: Optional[Tags]) -> List[str]:
    """Keys redeclared on the resource with the same value as the default."""
    default_tags = default_tags or {}
    return sorted(
        key for key, value in (resource_tags or {}).items()
        if key in default_tags and default_tags[key] == value
    )


def to_aws_tag_list(tags: Optional[Tags]) -> List[Dict[str, str]]:
    """Convert a tag dict to the ``[{"Key": k, "Value": v}]`` form, sorted by key."""
    return [{"Key": key, "Value": value} for key, value in sorted((tags or {}).items())]


def from_aws_tag_list(tag_list: Optional[Iterable[Dict[str, str]]]) -> Tags:
    """Convert a ``[{"Key": k, "Value": v}]`` list into a tag dict."""
    return {item["Key"]: item.get("Value", "") for item in (tag_list or [])}


class TagPolicy(BaseModel):
    """Organisation rules every tagged resource must follow."""

    required_keys: List[str] = Field(default_factory=list)
    allowed_values: Dict[str, List[str]] = Field(default_factory=dict)
    key_style: str = "pascal"

    @classmethod
    def from_config(cls, tagging_config) -> "TagPolicy":
        """Build a policy from a ``TaggingConfig``."""
        return cls(
            required_keys=list(tagging_config.required_keys),
            allowed_values=dict(tagging_config.allowed_values),
            key_style=tagging_config.key_style,
        )

    def validate_tags(
        self,
        tags: Optional[Tags],
        resource: str = "",
        ignore_system_tags: bool = False
    ) -> List[TagViolation]:
        """
        Check tags against the policy.

        Args:
            tags: Tags of a single resource
            resource: Resource identifier (ARN or address) used in reports
            ignore_system_tags: Skip keys with the reserved aws: prefix, which
                AWS sets itself on existing resources (e.g. CloudFormation)

        Returns:
            List of violations, empty when compliant.
        """
        tags = tags or {}
        violations: List[TagViolation] = []

        def add(key: str, kind: str, message: str) -> None:
            violations.append(TagViolation(resource=resource, key=key, kind=kind, message=message))

        for key in self.required_keys:
            if key not in tags:
                add(key, "missing", f"Required tag '{key}' is missing")

        pattern = KEY_STYLE_PATTERNS.get(self.key_style)
        seen: Dict[str, str] = {}

        for key, value in sorted(tags.items()):
            if key.lower().startswith(RESERVED_PREFIX):
                if ignore_system_tags:
                    continue
                add(key, "reserved_prefix", f"Tag key '{key}' uses the reserved '{RESERVED_PREFIX}' prefix")
                continue

            if len(key) > MAX_KEY_LENGTH:
                add(key, "too_long", f"Tag key exceeds {MAX_KEY_LENGTH} characters")
            if value is not None and len(value) > MAX_VALUE_LENGTH:
                add(key, "too_long", f"Value of '{key}' exceeds {MAX_VALUE_LENGTH} characters")

            if value is None or not str(value).strip():
                add(key, "empty_value", f"Tag '{key}' has an empty value")
            elif key in self.allowed_values and value not in self.allowed_values[key]:
                allowed = ", ".join(self.allowed_values[key])
                add(key, "invalid_value", f"Value '{value}' of '{key}' is not one of: {allowed}")

            if pattern is not None and not pattern.match(key):
                expected = normalize_key(key, self.key_style)
                add(key, "bad_key_style", f"Tag key '{key}' should be written '{expected}'")

            canonical = canonical_key(key)
            if canonical in seen:
                add(key, "case_duplicate", f"Tag key '{key}' duplicates '{seen[canonical]}'")
            else:
                seen[canonical] = key

        return violations

    def is_compliant(self, tags: Optional[Tags]) -> bool:
        return not self.validate_tags(tags)
