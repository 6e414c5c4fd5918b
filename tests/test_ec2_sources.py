from __future__ import annotations

from typing import Any, Iterator

import pytest
from botocore.exceptions import ClientError

from libraries.aws.ec2 import HealthyInstanceSource, TaggedInstanceSource
from libraries.membership.records import SourceUnavailable


def _instance(instance_id: str, address: str | None, **tags: str) -> dict[str, Any]:
    data: dict[str, Any] = {
        "InstanceId": instance_id,
        "State": {"Name": "running"},
        "Tags": [{"Key": key, "Value": value} for key, value in tags.items()],
    }
    if address is not None:
        data["PrivateIpAddress"] = address
    return data


def _page(*instances: dict[str, Any]) -> dict[str, Any]:
    return {"Reservations": [{"Instances": list(instances)}]}


class _StubPaginator:
    def __init__(self, client: "_StubEC2Client") -> None:
        self._client = client

    def paginate(self, **kwargs: Any) -> Iterator[dict[str, Any]]:
        self._client.paginate_calls.append(kwargs)
        for page in self._client.pages:
            if isinstance(page, Exception):
                raise page
            if "InstanceIds" in kwargs:
                wanted = set(kwargs["InstanceIds"])
                page = {
                    "Reservations": [
                        {
                            "Instances": [
                                instance
                                for instance in reservation["Instances"]
                                if instance["InstanceId"] in wanted
                            ]
                        }
                        for reservation in page["Reservations"]
                    ]
                }
            yield page


class _StubEC2Client:
    def __init__(self, pages: list[Any]) -> None:
        self.pages = pages
        self.paginate_calls: list[dict[str, Any]] = []

    def get_paginator(self, operation: str) -> _StubPaginator:
        assert operation == "describe_instances"
        return _StubPaginator(self)


class _StubELBClient:
    def __init__(self, states: list[dict[str, str]] | Exception) -> None:
        self._states = states
        self.requests: list[str] = []

    def describe_instance_health(self, LoadBalancerName: str) -> dict[str, Any]:
        self.requests.append(LoadBalancerName)
        if isinstance(self._states, Exception):
            raise self._states
        return {"InstanceStates": self._states}


def _client_error(code: str, message: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def test_tagged_source_filters_server_side_and_walks_every_page() -> None:
    client = _StubEC2Client(
        [
            _page(_instance("i-1", "10.0.0.1", Role="web")),
            _page(_instance("i-2", "10.0.0.2", Role="web"), _instance("i-3", "10.0.0.3", Role="web")),
        ]
    )

    records = TaggedInstanceSource("Role", "web", client=client).fetch()

    assert client.paginate_calls == [
        {"Filters": [{"Name": "tag:Role", "Values": ["web"]}]}
    ]
    assert [(r.address, r.label) for r in records] == [
        ("10.0.0.1", "i-1"),
        ("10.0.0.2", "i-2"),
        ("10.0.0.3", "i-3"),
    ]
    assert records[0].attributes == {"Role": "web"}
    assert records[0].liveness == "running"


def test_tagged_source_skips_instances_without_private_address() -> None:
    client = _StubEC2Client(
        [_page(_instance("i-1", "10.0.0.1"), _instance("i-terminated", None))]
    )

    records = TaggedInstanceSource("Role", "web", client=client).fetch()

    assert [r.label for r in records] == ["i-1"]


def test_tagged_source_failure_mid_pagination_returns_nothing() -> None:
    client = _StubEC2Client(
        [
            _page(_instance("i-1", "10.0.0.1")),
            _client_error("RequestLimitExceeded", "Request limit exceeded.", "DescribeInstances"),
        ]
    )

    with pytest.raises(SourceUnavailable) as excinfo:
        TaggedInstanceSource("Role", "web", client=client).fetch()

    assert "Request limit exceeded" in str(excinfo.value)
    assert excinfo.value.source == "ec2(tag:Role=web)"


def test_tagged_source_requires_tag_and_value() -> None:
    with pytest.raises(ValueError):
        TaggedInstanceSource("", "web", client=_StubEC2Client([]))
    with pytest.raises(ValueError):
        TaggedInstanceSource("Role", "", client=_StubEC2Client([]))


def test_healthy_source_keeps_only_in_service_instances() -> None:
    elb = _StubELBClient(
        [
            {"InstanceId": "i-1", "State": "InService"},
            {"InstanceId": "i-2", "State": "OutOfService"},
            {"InstanceId": "i-3", "State": "InService"},
        ]
    )
    ec2 = _StubEC2Client(
        [
            _page(
                _instance("i-1", "10.0.0.1"),
                _instance("i-2", "10.0.0.2"),
                _instance("i-3", "10.0.0.3"),
            )
        ]
    )

    records = HealthyInstanceSource("web-lb", elb_client=elb, ec2_client=ec2).fetch()

    assert elb.requests == ["web-lb"]
    assert ec2.paginate_calls == [{"InstanceIds": ["i-1", "i-3"]}]
    assert [r.address for r in records] == ["10.0.0.1", "10.0.0.3"]
    assert {r.liveness for r in records} == {"InService"}


def test_healthy_source_skips_lookup_when_nothing_in_service() -> None:
    elb = _StubELBClient([{"InstanceId": "i-1", "State": "Unknown"}])
    ec2 = _StubEC2Client([])

    records = HealthyInstanceSource("web-lb", elb_client=elb, ec2_client=ec2).fetch()

    assert records == []
    assert ec2.paginate_calls == []


def test_healthy_source_batches_instance_lookups(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("libraries.aws.ec2.INSTANCE_ID_BATCH", 2)
    elb = _StubELBClient(
        [{"InstanceId": f"i-{n}", "State": "InService"} for n in range(5)]
    )
    ec2 = _StubEC2Client(
        [_page(*[_instance(f"i-{n}", f"10.0.0.{n}") for n in range(5)])]
    )

    records = HealthyInstanceSource("web-lb", elb_client=elb, ec2_client=ec2).fetch()

    assert [len(call["InstanceIds"]) for call in ec2.paginate_calls] == [2, 2, 1]
    assert len(records) == 5


def test_healthy_source_wraps_elb_errors() -> None:
    elb = _StubELBClient(
        _client_error("LoadBalancerNotFound", "There is no ACTIVE Load Balancer named 'web-lb'", "DescribeInstanceHealth")
    )

    with pytest.raises(SourceUnavailable) as excinfo:
        HealthyInstanceSource("web-lb", elb_client=elb, ec2_client=_StubEC2Client([])).fetch()

    assert "web-lb" in str(excinfo.value)
    assert excinfo.value.source == "elb(web-lb)"
