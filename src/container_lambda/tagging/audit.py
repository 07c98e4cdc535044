"""
Audit tags of existing AWS resources against a tag policy.

Uses the Resource Groups Tagging API, which lists every taggable resource in
a region together with its tags, so one scan covers ECR repositories, Lambda
functions and everything else the account owns.
"""

from collections import Counter
from typing import Dict, List, Optional, Tuple

from botocore.exceptions import ClientError
from pydantic import BaseModel, Field

from ..errors import DeploymentError
from ..utils.logger import get_logger
from ..utils.aws_helpers import get_boto3_client
from .policy import Tags, TagPolicy, TagViolation, from_aws_tag_list

logger = get_logger(__name__)

# tag_resources accepts at most 20 ARNs per call
TAG_RESOURCES_BATCH_SIZE = 20


class AuditReport(BaseModel):
    """Result of a tag audit."""

    resources_scanned: int = 0
    violations: List[TagViolation] = Field(default_factory=list)
    compliant: List[str] = Field(default_factory=list)
    non_compliant: List[str] = Field(default_factory=list)

    @property
    def compliance_rate(self) -> float:
        if not self.resources_scanned:
            return 1.0
        return len(self.compliant) / self.resources_scanned

    def by_kind(self) -> Dict[str, int]:
        """Count violations per kind."""
        return dict(Counter(violation.kind for violation in self.violations))

    def to_dict(self) -> Dict:
        return {
            "resources_scanned": self.resources_scanned,
            "compliant": len(self.compliant),
            "non_compliant": len(self.non_compliant),
            "compliance_rate": round(self.compliance_rate, 4),
            "violations_by_kind": self.by_kind(),
            "violations": [violation.to_dict() for violation in self.violations],
        }


class TagAuditor:
    """Scans tagged resources and checks them against a TagPolicy."""

    def __init__(self, policy: TagPolicy, region: Optional[str] = None):
        """
        Initialize Tag Auditor.

        Args:
            policy: Tag policy to enforce
            region: AWS region
        """
        self.policy = policy
        self.region = region
        self.tagging_client = get_boto3_client('resourcegroupstaggingapi', region=region)

    def fetch_resources(
        self,
        resource_types: Optional[List[str]] = None,
        tag_filters: Optional[Tags] = None
    ) -> List[Tuple[str, Tags]]:
        """
        List resources and their tags.

        Args:
            resource_types: Filters such as 'lambda:function' or 'ecr:repository'
            tag_filters: Only return resources carrying these key/value pairs

        Returns:
            List of (arn, tags) tuples.
        """
        kwargs = {}
        if resource_types:
            kwargs['ResourceTypeFilters'] = list(resource_types)
        if tag_filters:
            kwargs['TagFilters'] = [
                {'Key': key, 'Values': [value]} for key, value in sorted(tag_filters.items())
            ]

        try:
            paginator = self.tagging_client.get_paginator('get_resources')
            resources = []
            for page in paginator.paginate(**kwargs):
                for mapping in page.get('ResourceTagMappingList', []):
                    resources.append(
                        (mapping['ResourceARN'], from_aws_tag_list(mapping.get('Tags', [])))
                    )
        except ClientError as e:
            logger.error(f"Failed to list tagged resources: {e}")
            raise DeploymentError("Failed to list tagged resources", details={'error': str(e)}) from e

        logger.info(f"Fetched {len(resources)} resources")
        return resources

    def audit(self, resource_types: Optional[List[str]] = None) -> AuditReport:
        """
        Validate every resource's tags against the policy.

        Args:
            resource_types: Optional resource type filters

        Returns:
            AuditReport with per-resource violations.
        """
        report = AuditReport()

        for arn, tags in self.fetch_resources(resource_types=resource_types):
            report.resources_scanned += 1
            # aws: keys on existing resources are set by AWS and cannot be edited
            violations = self.policy.validate_tags(tags, resource=arn, ignore_system_tags=True)
            if violations:
                report.non_compliant.append(arn)
                report.violations.extend(violations)
            else:
                report.compliant.append(arn)

        logger.info(
            f"Audit complete: {len(report.compliant)}/{report.resources_scanned} compliant "
            f"({report.compliance_rate:.1%})"
        )
        for kind, count in sorted(report.by_kind().items()):
            logger.info(f"  {kind}: {count}")

        return report

    def apply_default_tags(self, arns: List[str], tags: Tags) -> Dict[str, str]:
        """
        Add tags to resources in batches.

        Args:
            arns: Resource ARNs to tag
            tags: Tags to add (existing keys are overwritten)

        Returns:
            Mapping of ARN to error message for resources that failed.
        """
        failed: Dict[str, str] = {}
        if not arns or not tags:
            return failed

        logger.info(f"Tagging {len(arns)} resources with {sorted(tags)}")

        for start in range(0, len(arns), TAG_RESOURCES_BATCH_SIZE):
            batch = arns[start:start + TAG_RESOURCES_BATCH_SIZE]
            try:
                response = self.tagging_client.tag_resources(ResourceARNList=batch, Tags=tags)
            except ClientError as e:
                logger.error(f"Failed to tag batch starting at {batch[0]}: {e}")
                for arn in batch:
                    failed[arn] = str(e)
                continue

            for arn, info in response.get('FailedResourcesMap', {}).items():
                failed[arn] = info.get('ErrorMessage', info.get('ErrorCode', 'Unknown error'))

        if failed:
            logger.warning(f"Failed to tag {len(failed)} resources")
        return failed

