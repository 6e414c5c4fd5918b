"""EC2 and ELB membership sources for fleet reconciliation."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError

from libraries.membership.records import MemberRecord, SourceUnavailable

log = structlog.get_logger(__name__)

IN_SERVICE = "InService"
# DescribeInstances rejects more than 1000 ids per call.
INSTANCE_ID_BATCH = 1000


def _instance_tags(instance: Dict[str, Any]) -> Dict[str, str]:
    tags: Dict[str, str] = {}
    for tag in instance.get("Tags") or []:
        key = tag.get("Key")
        if key:
            tags[key] = tag.get("Value") or ""
    return tags


def _iter_instances(pages: Iterable[Dict[str, Any]]) -> Iterator[Dict[str, Any]]:
    for page in pages:
        for reservation in page.get("Reservations", []):
            yield from reservation.get("Instances", [])


def _to_records(instances: Iterable[Dict[str, Any]], *, source: str) -> List[MemberRecord]:
    records: List[MemberRecord] = []
    for instance in instances:
        address = instance.get("PrivateIpAddress")
        instance_id = instance.get("InstanceId", "")
        if not address:
            log.debug("aws.ec2.instance_without_address", source=source, instance=instance_id)
            continue
        records.append(
            MemberRecord(
                address=address,
                label=instance_id,
                attributes=_instance_tags(instance),
                liveness=(instance.get("State") or {}).get("Name"),
            )
        )
    return records


def _chunks(values: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


class TaggedInstanceSource:
    """EC2 instances carrying an exact ``key=value`` tag."""

    def __init__(
        self,
        tag_key: str,
        tag_value: str,
        *,
        client: Optional[Any] = None,
        region: Optional[str] = None,
    ) -> None:
        if not tag_key:
            raise ValueError("tag_key must be provided")
        if not tag_value:
            raise ValueError("tag_value must be provided")
        self.tag_key = tag_key
        self.tag_value = tag_value
        self.region = region
        self._client = client
        self.name = f"ec2(tag:{tag_key}={tag_value})"

    def fetch(self) -> List[MemberRecord]:
        try:
            client = self._client or boto3.client("ec2", region_name=self.region)
            paginator = client.get_paginator("describe_instances")
            pages = paginator.paginate(
                Filters=[{"Name": f"tag:{self.tag_key}", "Values": [self.tag_value]}]
            )
            records = _to_records(_iter_instances(pages), source=self.name)
        except (BotoCoreError, ClientError) as exc:
            log.error("aws.ec2.describe_failed", source=self.name, error=str(exc))
            raise SourceUnavailable(self.name, str(exc)) from exc
        except (AttributeError, TypeError, ValidationError) as exc:
            raise SourceUnavailable(self.name, f"malformed response: {exc}") from exc

        log.info(
            "aws.ec2.describe.complete",
            tag=self.tag_key,
            value=self.tag_value,
            instances=len(records),
        )
        return records


class HealthyInstanceSource:
    """Instances a classic load balancer reports as ``InService``."""

    def __init__(
        self,
        load_balancer_name: str,
        *,
        elb_client: Optional[Any] = None,
        ec2_client: Optional[Any] = None,
        region: Optional[str] = None,
    ) -> None:
        if not load_balancer_name:
            raise ValueError("load_balancer_name must be provided")
        self.load_balancer_name = load_balancer_name
        self.region = region
        self._elb_client = elb_client
        self._ec2_client = ec2_client
        self.name = f"elb({load_balancer_name})"

    def _in_service_ids(self, elb: Any) -> List[str]:
        response = elb.describe_instance_health(LoadBalancerName=self.load_balancer_name)
        ids: List[str] = []
        for state in response.get("InstanceStates", []):
            if state.get("State") == IN_SERVICE and state.get("InstanceId"):
                ids.append(state["InstanceId"])
        return ids

    def fetch(self) -> List[MemberRecord]:
        try:
            elb = self._elb_client or boto3.client("elb", region_name=self.region)
            instance_ids = self._in_service_ids(elb)
            records: List[MemberRecord] = []
            if instance_ids:
                ec2 = self._ec2_client or boto3.client("ec2", region_name=self.region)
                paginator = ec2.get_paginator("describe_instances")
                for batch in _chunks(instance_ids, INSTANCE_ID_BATCH):
                    pages = paginator.paginate(InstanceIds=list(batch))
                    records.extend(_to_records(_iter_instances(pages), source=self.name))
        except (BotoCoreError, ClientError) as exc:
            log.error("aws.elb.health_failed", source=self.name, error=str(exc))
            raise SourceUnavailable(self.name, str(exc)) from exc
        except (AttributeError, TypeError, ValidationError) as exc:
            raise SourceUnavailable(self.name, f"malformed response: {exc}") from exc

        records = [
            record.model_copy(update={"liveness": IN_SERVICE}) for record in records
        ]
        log.info(
            "aws.elb.health.complete",
            load_balancer=self.load_balancer_name,
            in_service=len(instance_ids),
            instances=len(records),
        )
        return records


__all__ = ["HealthyInstanceSource", "IN_SERVICE", "TaggedInstanceSource"]
