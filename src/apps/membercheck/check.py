"""Typer command comparing fleet membership with Consul membership."""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Literal, Mapping, Optional, cast

import structlog
import typer

from apps.membercheck.config import (
    load_profile,
    optional_bool,
    optional_float,
    optional_str,
)
from apps.membercheck.utils.errors import MemberCheckConfigError
from apps.membercheck.utils.logging import configure_logging
from libraries.aws.ec2 import HealthyInstanceSource, TaggedInstanceSource
from libraries.consul.client import ConsulClient
from libraries.consul.sources import CatalogServiceSource, GossipMemberSource
from libraries.membership.records import MembershipSource
from libraries.reconcile.job import DEFAULT_TIMEOUT, MembershipCheckJob
from libraries.reconcile.verdict import SeverityPolicy, Verdict

log = structlog.get_logger(__name__)

CHECK_NAME = "MEMBERSHIP"

FleetKind = Literal["tag", "elb"]
ClusterKind = Literal["catalog", "members"]
FLEET_KINDS = ("tag", "elb")
CLUSTER_KINDS = ("catalog", "members")


@dataclass(frozen=True)
class CheckOptions:
    fleet_source: FleetKind
    cluster_source: ClusterKind
    policy: SeverityPolicy
    timeout: float
    ec2_tag: str | None = None
    ec2_value: str | None = None
    elb_name: str | None = None
    region: str | None = None
    consul_service: str | None = None
    consul_tag: str | None = None
    member_tag: str | None = None
    member_value: str | None = None
    consul_addr: str | None = None
    consul_token: str | None = None
    consul_datacenter: str | None = None


def _pick(cli_value: str | None, profile_data: Mapping[str, Any], field: str) -> str | None:
    if cli_value:
        return cli_value
    return optional_str(profile_data.get(field), field) or None


def _require(value: str | None, flag: str, purpose: str) -> str:
    if not value:
        raise MemberCheckConfigError(
            f"{flag} must be supplied via the command line or the selected profile "
            f"when {purpose}."
        )
    return value


def resolve_check_options(
    profile_data: Mapping[str, Any],
    *,
    fleet_source: str | None = None,
    cluster_source: str | None = None,
    policy: str | None = None,
    ignore_fleet_only: bool = False,
    ignore_cluster_only: bool = False,
    timeout: float | None = None,
    **values: str | None,
) -> CheckOptions:
    """Merge CLI values over *profile_data* and validate the role filters."""

    resolved = {
        item.name: _pick(values.get(item.name), profile_data, item.name)
        for item in fields(CheckOptions)
        if item.name not in {"fleet_source", "cluster_source", "policy", "timeout"}
    }

    fleet_kind = _pick(fleet_source, profile_data, "fleet_source") or "tag"
    if fleet_kind not in FLEET_KINDS:
        raise MemberCheckConfigError(
            f"Fleet source must be one of {', '.join(FLEET_KINDS)}; got '{fleet_kind}'."
        )
    if fleet_kind == "tag":
        _require(resolved["ec2_tag"], "--ec2-tag", "filtering EC2 instances by tag")
        _require(resolved["ec2_value"], "--ec2-value", "filtering EC2 instances by tag")
    else:
        _require(resolved["elb_name"], "--elb-name", "using load balancer health")

    cluster_kind = _pick(cluster_source, profile_data, "cluster_source") or "catalog"
    if cluster_kind not in CLUSTER_KINDS:
        raise MemberCheckConfigError(
            f"Cluster source must be one of {', '.join(CLUSTER_KINDS)}; "
            f"got '{cluster_kind}'."
        )
    if cluster_kind == "catalog":
        _require(resolved["consul_service"], "--consul-service", "querying the catalog")
    else:
        _require(resolved["member_tag"], "--member-tag", "filtering gossip members")
        _require(resolved["member_value"], "--member-value", "filtering gossip members")

    policy_name = _pick(policy, profile_data, "policy") or "asymmetric"
    try:
        base_policy = SeverityPolicy.preset(policy_name)
    except ValueError as exc:
        raise MemberCheckConfigError(str(exc)) from exc

    skip_fleet = ignore_fleet_only or bool(
        optional_bool(profile_data.get("ignore_fleet_only"), "ignore_fleet_only")
    )
    skip_cluster = ignore_cluster_only or bool(
        optional_bool(profile_data.get("ignore_cluster_only"), "ignore_cluster_only")
    )
    resolved_policy = base_policy.model_copy(
        update={
            "check_fleet_only": not skip_fleet,
            "check_cluster_only": not skip_cluster,
        }
    )

    resolved_timeout = (
        timeout
        if timeout is not None
        else optional_float(profile_data.get("timeout"), "timeout")
    )
    if resolved_timeout is None:
        resolved_timeout = DEFAULT_TIMEOUT
    if resolved_timeout <= 0:
        raise MemberCheckConfigError("Timeout must be greater than zero seconds.")

    return CheckOptions(
        fleet_source=cast(FleetKind, fleet_kind),
        cluster_source=cast(ClusterKind, cluster_kind),
        policy=resolved_policy,
        timeout=resolved_timeout,
        **resolved,
    )


def build_sources(options: CheckOptions) -> tuple[MembershipSource, MembershipSource]:
    """Instantiate the fleet and cluster adapters selected by *options*."""

    fleet: MembershipSource
    if options.fleet_source == "elb":
        fleet = HealthyInstanceSource(
            cast(str, options.elb_name), region=options.region
        )
    else:
        fleet = TaggedInstanceSource(
            cast(str, options.ec2_tag),
            cast(str, options.ec2_value),
            region=options.region,
        )

    client = ConsulClient.from_env(
        address=options.consul_addr,
        token=options.consul_token,
        datacenter=options.consul_datacenter,
    )
    cluster: MembershipSource
    if options.cluster_source == "members":
        cluster = GossipMemberSource(
            cast(str, options.member_tag),
            cast(str, options.member_value),
            client=client,
        )
    else:
        cluster = CatalogServiceSource(
            cast(str, options.consul_service), options.consul_tag, client=client
        )
    return fleet, cluster


def emit(verdict: Verdict) -> None:
    typer.echo(f"{CHECK_NAME} {verdict.severity.status}: {verdict.message}")


def check(
    fleet_source: Optional[str] = typer.Option(
        None, "--fleet-source", help="Fleet membership source: tag or elb."
    ),
    ec2_tag: Optional[str] = typer.Option(
        None, "--ec2-tag", help="Tag name on EC2 instances."
    ),
    ec2_value: Optional[str] = typer.Option(
        None, "--ec2-value", help="Expected EC2 tag value."
    ),
    elb_name: Optional[str] = typer.Option(
        None, "--elb-name", help="Classic load balancer whose InService instances form the fleet."
    ),
    region: Optional[str] = typer.Option(None, "--region", help="AWS region override."),
    cluster_source: Optional[str] = typer.Option(
        None, "--cluster-source", help="Cluster membership source: catalog or members."
    ),
    consul_service: Optional[str] = typer.Option(
        None, "--consul-service", help="Name of the Consul service."
    ),
    consul_tag: Optional[str] = typer.Option(
        None, "--consul-tag", help="Tag on the Consul service."
    ),
    member_tag: Optional[str] = typer.Option(
        None, "--member-tag", help="Serf tag key expected on alive gossip members."
    ),
    member_value: Optional[str] = typer.Option(
        None, "--member-value", help="Expected serf tag value."
    ),
    consul_addr: Optional[str] = typer.Option(
        None, "--consul-addr", help="Consul HTTP address (defaults to CONSUL_HTTP_ADDR)."
    ),
    consul_token: Optional[str] = typer.Option(
        None, "--consul-token", help="Consul ACL token (defaults to CONSUL_HTTP_TOKEN)."
    ),
    consul_datacenter: Optional[str] = typer.Option(
        None, "--consul-datacenter", help="Consul datacenter for catalog queries."
    ),
    policy: Optional[str] = typer.Option(
        None, "--policy", help="Severity policy: asymmetric or strict."
    ),
    ignore_fleet_only: bool = typer.Option(
        False, "--ignore-fleet-only", help="Do not report instances missing from the cluster."
    ),
    ignore_cluster_only: bool = typer.Option(
        False, "--ignore-cluster-only", help="Do not report members missing from the fleet."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Overall deadline in seconds for both fetches."
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", help="Configuration profile to load from membercheck.toml."
    ),
    workspace: Optional[Path] = typer.Option(
        None, "--workspace", help="Directory holding a workspace membercheck.toml."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to stderr."),
) -> None:
    """Compare fleet membership with Consul membership."""

    configure_logging(verbose=verbose)

    try:
        profile_context = load_profile(profile=profile, workspace=workspace)
        options = resolve_check_options(
            profile_context.data,
            fleet_source=fleet_source,
            cluster_source=cluster_source,
            policy=policy,
            ignore_fleet_only=ignore_fleet_only,
            ignore_cluster_only=ignore_cluster_only,
            timeout=timeout,
            ec2_tag=ec2_tag,
            ec2_value=ec2_value,
            elb_name=elb_name,
            region=region,
            consul_service=consul_service,
            consul_tag=consul_tag,
            member_tag=member_tag,
            member_value=member_value,
            consul_addr=consul_addr,
            consul_token=consul_token,
            consul_datacenter=consul_datacenter,
        )
        fleet, cluster = build_sources(options)
    except MemberCheckConfigError as exc:
        log.error("membercheck.config_failed", error=str(exc))
        verdict = Verdict.unknown(f"{exc.heading}: {exc}")
        emit(verdict)
        raise typer.Exit(code=verdict.exit_code) from exc

    log.info(
        "membercheck.start",
        profile=profile_context.name,
        fleet=fleet.name,
        cluster=cluster.name,
    )
    job = MembershipCheckJob(
        fleet_source=fleet,
        cluster_source=cluster,
        policy=options.policy,
        timeout=options.timeout,
    )
    verdict = job.run()
    emit(verdict)
    raise typer.Exit(code=verdict.exit_code)


__all__ = [
    "CHECK_NAME",
    "CheckOptions",
    "build_sources",
    "check",
    "emit",
    "resolve_check_options",
]
