"""Tag policy validation, auditing and Terraform plan inspection."""

from .policy import (
    Tags,
    TagCollision,
    TagPolicy,
    TagViolation,
    find_collisions,
    find_redundant,
    from_aws_tag_list,
    merge_tags,
    normalize_key,
    to_aws_tag_list,
)
from .audit import AuditReport, TagAuditor

__all__ = [
    "Tags",
    "TagCollision",
    "TagPolicy",
    "TagViolation",
    "find_collisions",
    "find_redundant",
    "from_aws_tag_list",
    "merge_tags",
    "normalize_key",
    "to_aws_tag_list",
    "AuditReport",
    "TagAuditor",
]
