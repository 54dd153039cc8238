"""
The fixed, ordered provisioning plan for a two-tier VPC.

Each step names the earlier steps whose provider ids it consumes. Creation
walks the plan forward and deletion walks the exact reverse, so a resource
is never deleted while a later-created resource that depends on it still
exists.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterator, List, Optional, Sequence, Tuple

from .config import Settings
from .errors import InvalidPlan
from .poll import Poller
from .provider import Ec2Gateway

Deps = Dict[str, str]


class LogicalNames:
    NETWORK = "network"
    PUBLIC_SUBNET_1 = "public-subnet-1"
    PUBLIC_SUBNET_2 = "public-subnet-2"
    PRIVATE_SUBNET_1 = "private-subnet-1"
    PRIVATE_SUBNET_2 = "private-subnet-2"
    INTERNET_GATEWAY = "internet-gateway"
    PUBLIC_ROUTE_TABLE = "public-route-table"
    PRIVATE_ROUTE_TABLE = "private-route-table"
    ELASTIC_IP = "elastic-ip"
    NAT_GATEWAY = "nat-gateway"


@dataclass(frozen=True)
class PlanStep:
    """
    One resource in the plan.

    ``create_fn`` receives the resolved ids of ``depends_on`` and returns the
    new resource's id. It makes exactly one provider create call; attaching,
    routing and attribute changes belong in ``after_create_fn``, which runs
    once the id is recorded and the resource is ready (after
    ``wait_for_create_fn``, if any). ``delete_fn`` receives the step's own id
    and whichever dependency ids are still recorded.
    """
    logical_name: str
    resource_kind: str
    create_fn: Callable[[Deps], str]
    delete_fn: Callable[[str, Deps], None]
    depends_on: FrozenSet[str] = field(default_factory=frozenset)
    wait_for_create_fn: Optional[Callable[[str], None]] = None
    wait_for_delete_fn: Optional[Callable[[str], None]] = None
    after_create_fn: Optional[Callable[[str, Deps], None]] = None


def validate_plan(steps: Sequence[PlanStep]) -> None:
    """
    Check that names are unique and every dependency names an earlier step.

    Raises:
        InvalidPlan: On the first violation found
    """
    seen = set()
    for step in steps:
        if step.logical_name in seen:
            raise InvalidPlan(f"Duplicate step name: {step.logical_name}")
        unknown = set(step.depends_on) - seen
        if step.logical_name in step.depends_on:
            raise InvalidPlan(f"{step.logical_name} depends on itself")
        if unknown:
            raise InvalidPlan(
                f"{step.logical_name} depends on {', '.join(sorted(unknown))}, "
                "which is not an earlier step"
            )
        seen.add(step.logical_name)


class Plan:
    """Immutable ordered sequence of plan steps."""

    def __init__(self, steps: Sequence[PlanStep]):
        validate_plan(steps)
        self._steps: Tuple[PlanStep, ...] = tuple(steps)

    @property
    def steps(self) -> Tuple[PlanStep, ...]:
        return self._steps

    @property
    def names(self) -> List[str]:
        return [s.logical_name for s in self._steps]

    def __iter__(self) -> Iterator[PlanStep]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def reversed(self) -> Tuple[PlanStep, ...]:
        """Steps in exact reverse order, for deletion."""
        return tuple(reversed(self._steps))

    def dependents(self, name: str) -> List[str]:
        """Names of steps that declare name as a dependency."""
        return [s.logical_name for s in self._steps if name in s.depends_on]


def _wait_nat_available(gateway: Ec2Gateway, poller: Poller, nat_id: str) -> None:
    def check() -> bool:
        state = gateway.nat_gateway_state(nat_id)
        if state in ("failed", "deleting", "deleted"):
            raise RuntimeError(f"NAT Gateway {nat_id} entered state '{state}'")
        return state == "available"

    poller.until(check, f"NAT Gateway {nat_id} to become available")


def _wait_nat_deleted(gateway: Ec2Gateway, poller: Poller, nat_id: str) -> None:
    poller.until(lambda: gateway.nat_gateway_state(nat_id) == "deleted",
                 f"NAT Gateway {nat_id} to be deleted")


def build_vpc_plan(gateway: Ec2Gateway, settings: Settings, poller: Poller) -> Plan:
    """
    Build the plan for one VPC with two public and two private subnets.

    Args:
        gateway: Provider gateway the steps call into
        settings: CIDRs, zones and names
        poller: Bounds the NAT gateway waits

    Returns:
        Plan: The fixed ten-step plan
    """
    n = LogicalNames
    s = settings

    def subnet_step(name: str, cidr: str, zone: str, public: bool) -> PlanStep:
        label = f"{'Public' if public else 'Private'}-Subnet-{zone}"
        return PlanStep(
            logical_name=name,
            resource_kind="subnet",
            depends_on=frozenset({n.NETWORK}),
            create_fn=lambda deps: gateway.create_subnet(deps[n.NETWORK], cidr, zone, label),
            delete_fn=lambda subnet_id, deps: gateway.delete_subnet(subnet_id),
            after_create_fn=(lambda subnet_id, deps: gateway.enable_public_ip(subnet_id)) if public else None,
        )

    def route_public_table(rt_id: str, deps: Deps) -> None:
        gateway.add_default_route(rt_id, gateway_id=deps[n.INTERNET_GATEWAY])
        gateway.associate_route_table(rt_id, deps[n.PUBLIC_SUBNET_1])
        gateway.associate_route_table(rt_id, deps[n.PUBLIC_SUBNET_2])

    def route_private_table(rt_id: str, deps: Deps) -> None:
        gateway.associate_route_table(rt_id, deps[n.PRIVATE_SUBNET_1])
        gateway.associate_route_table(rt_id, deps[n.PRIVATE_SUBNET_2])

    def delete_route_table(rt_id: str, deps: Deps) -> None:
        gateway.disassociate_route_table(rt_id)
        gateway.delete_route_table(rt_id)

    def delete_internet_gateway(igw_id: str, deps: Deps) -> None:
        if n.NETWORK in deps:
            gateway.detach_internet_gateway(igw_id, deps[n.NETWORK])
        gateway.delete_internet_gateway(igw_id)

    steps = [
        PlanStep(
            logical_name=n.NETWORK,
            resource_kind="vpc",
            create_fn=lambda deps: gateway.create_network(s.vpc_cidr, s.vpc_name),
            delete_fn=lambda vpc_id, deps: gateway.delete_network(vpc_id),
            after_create_fn=lambda vpc_id, deps: gateway.enable_dns(vpc_id),
        ),
        subnet_step(n.PUBLIC_SUBNET_1, s.public_subnet_1_cidr, s.az1, True),
        subnet_step(n.PUBLIC_SUBNET_2, s.public_subnet_2_cidr, s.az2, True),
        subnet_step(n.PRIVATE_SUBNET_1, s.private_subnet_1_cidr, s.az1, False),
        subnet_step(n.PRIVATE_SUBNET_2, s.private_subnet_2_cidr, s.az2, False),
        PlanStep(
            logical_name=n.INTERNET_GATEWAY,
            resource_kind="internet-gateway",
            depends_on=frozenset({n.NETWORK}),
            create_fn=lambda deps: gateway.create_internet_gateway(f"{s.vpc_name}-IGW"),
            delete_fn=delete_internet_gateway,
            after_create_fn=lambda igw_id, deps: gateway.attach_internet_gateway(igw_id, deps[n.NETWORK]),
        ),
        PlanStep(
            logical_name=n.PUBLIC_ROUTE_TABLE,
            resource_kind="route-table",
            depends_on=frozenset({n.NETWORK, n.INTERNET_GATEWAY, n.PUBLIC_SUBNET_1, n.PUBLIC_SUBNET_2}),
            create_fn=lambda deps: gateway.create_route_table(deps[n.NETWORK], "Public-RT"),
            delete_fn=delete_route_table,
            after_create_fn=route_public_table,
        ),
        PlanStep(
            logical_name=n.PRIVATE_ROUTE_TABLE,
            resource_kind="route-table",
            depends_on=frozenset({n.NETWORK, n.PRIVATE_SUBNET_1, n.PRIVATE_SUBNET_2}),
            create_fn=lambda deps: gateway.create_route_table(deps[n.NETWORK], "Private-RT"),
            delete_fn=delete_route_table,
            after_create_fn=route_private_table,
        ),
        PlanStep(
            logical_name=n.ELASTIC_IP,
            resource_kind="elastic-ip",
            create_fn=lambda deps: gateway.allocate_address(),
            delete_fn=lambda allocation_id, deps: gateway.release_address(allocation_id),
        ),
        PlanStep(
            logical_name=n.NAT_GATEWAY,
            resource_kind="nat-gateway",
            depends_on=frozenset({n.PUBLIC_SUBNET_1, n.ELASTIC_IP, n.PRIVATE_ROUTE_TABLE}),
            create_fn=lambda deps: gateway.create_nat_gateway(
                deps[n.PUBLIC_SUBNET_1], deps[n.ELASTIC_IP], f"{s.vpc_name}-NAT"
            ),
            delete_fn=lambda nat_id, deps: gateway.delete_nat_gateway(nat_id),
            wait_for_create_fn=lambda nat_id: _wait_nat_available(gateway, poller, nat_id),
            wait_for_delete_fn=lambda nat_id: _wait_nat_deleted(gateway, poller, nat_id),
            after_create_fn=lambda nat_id, deps: gateway.add_default_route(
                deps[n.PRIVATE_ROUTE_TABLE], nat_gateway_id=nat_id
            ),
        ),
    ]

    return Plan(steps)
