"""
EC2 provider gateway: the only code that talks to the AWS API.

Each method is a single, narrow operation keyed by resource kind. Errors are
the provider's own (``botocore.exceptions.ClientError`` and friends); the
orchestrator decides what a failure means for the run. The attach, detach,
route and association calls treat an "already done" answer as success, so a
step interrupted half-way can be run again.
"""

import logging
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from .tags import named, tag_specifications

logger = logging.getLogger(__name__)

DEFAULT_ROUTE = "0.0.0.0/0"


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class Ec2Gateway:
    """Thin wrapper around a boto3 EC2 client for the VPC resource family."""

    def __init__(self, region: str, tags: Optional[Dict[str, str]] = None,
                 client: Any = None, sts_client: Any = None):
        self.region = region
        self.tags = tags or {}
        self.ec2 = client or boto3.client("ec2", region_name=region)
        self._sts = sts_client

    def check_credentials(self) -> str:
        """
        Verify that AWS credentials are configured.

        Returns:
            Account ID of the caller
        """
        sts = self._sts or boto3.client("sts", region_name=self.region)
        identity = sts.get_caller_identity()
        return identity["Account"]

    # Network

    def create_network(self, cidr: str, name: str) -> str:
        response = self.ec2.create_vpc(
            CidrBlock=cidr,
            TagSpecifications=tag_specifications("vpc", named(self.tags, name)),
        )
        vpc_id = response["Vpc"]["VpcId"]
        logger.info(f"VPC created: {vpc_id}")
        return vpc_id

    def enable_dns(self, vpc_id: str) -> None:
        # Only one attribute may be modified per call
        self.ec2.modify_vpc_attribute(VpcId=vpc_id, EnableDnsHostnames={"Value": True})
        self.ec2.modify_vpc_attribute(VpcId=vpc_id, EnableDnsSupport={"Value": True})
        logger.info(f"DNS support and hostnames enabled for {vpc_id}")

    def delete_network(self, vpc_id: str) -> None:
        self.ec2.delete_vpc(VpcId=vpc_id)
        logger.info(f"VPC deleted: {vpc_id}")

    # Subnets

    def create_subnet(self, network_id: str, cidr: str, zone: str, name: str) -> str:
        response = self.ec2.create_subnet(
            VpcId=network_id,
            CidrBlock=cidr,
            AvailabilityZone=zone,
            TagSpecifications=tag_specifications("subnet", named(self.tags, name)),
        )
        subnet_id = response["Subnet"]["SubnetId"]
        logger.info(f"Subnet created: {subnet_id} ({cidr}, {zone})")
        return subnet_id

    def enable_public_ip(self, subnet_id: str) -> None:
        self.ec2.modify_subnet_attribute(SubnetId=subnet_id, MapPublicIpOnLaunch={"Value": True})
        logger.info(f"Public IP on launch enabled for {subnet_id}")

    def delete_subnet(self, subnet_id: str) -> None:
        self.ec2.delete_subnet(SubnetId=subnet_id)
        logger.info(f"Subnet deleted: {subnet_id}")

    # Internet gateway

    def create_internet_gateway(self, name: str) -> str:
        response = self.ec2.create_internet_gateway(
            TagSpecifications=tag_specifications("internet-gateway", named(self.tags, name)),
        )
        igw_id = response["InternetGateway"]["InternetGatewayId"]
        logger.info(f"Internet Gateway created: {igw_id}")
        return igw_id

    def attach_internet_gateway(self, igw_id: str, network_id: str) -> None:
        try:
            self.ec2.attach_internet_gateway(InternetGatewayId=igw_id, VpcId=network_id)
        except ClientError as e:
            if _error_code(e) != "Resource.AlreadyAssociated":
                raise
            logger.info(f"Internet Gateway {igw_id} already attached to {network_id}")
            return
        logger.info(f"Internet Gateway {igw_id} attached to {network_id}")

    def detach_internet_gateway(self, igw_id: str, network_id: str) -> None:
        try:
            self.ec2.detach_internet_gateway(InternetGatewayId=igw_id, VpcId=network_id)
        except ClientError as e:
            if _error_code(e) != "Gateway.NotAttached":
                raise
            logger.info(f"Internet Gateway {igw_id} already detached from {network_id}")
            return
        logger.info(f"Internet Gateway {igw_id} detached from {network_id}")

    def delete_internet_gateway(self, igw_id: str) -> None:
        self.ec2.delete_internet_gateway(InternetGatewayId=igw_id)
        logger.info(f"Internet Gateway deleted: {igw_id}")

    # Route tables

    def create_route_table(self, network_id: str, name: str) -> str:
        response = self.ec2.create_route_table(
            VpcId=network_id,
            TagSpecifications=tag_specifications("route-table", named(self.tags, name)),
        )
        rt_id = response["RouteTable"]["RouteTableId"]
        logger.info(f"Route table created: {rt_id}")
        return rt_id

    def add_default_route(self, route_table_id: str, gateway_id: Optional[str] = None,
                          nat_gateway_id: Optional[str] = None) -> None:
        """
        Add a 0.0.0.0/0 route via an internet gateway or a NAT gateway.

        Args:
            route_table_id: Route table to modify
            gateway_id: Internet gateway target
            nat_gateway_id: NAT gateway target

        Raises:
            ValueError: Unless exactly one target is given
        """
        if (gateway_id is None) == (nat_gateway_id is None):
            raise ValueError("Exactly one of gateway_id or nat_gateway_id is required")

        kwargs = {"RouteTableId": route_table_id, "DestinationCidrBlock": DEFAULT_ROUTE}
        if gateway_id:
            kwargs["GatewayId"] = gateway_id
        else:
            kwargs["NatGatewayId"] = nat_gateway_id
        try:
            self.ec2.create_route(**kwargs)
        except ClientError as e:
            if _error_code(e) != "RouteAlreadyExists":
                raise
            logger.info(f"Default route already present in {route_table_id}")
            return
        logger.info(f"Default route added to {route_table_id} via {gateway_id or nat_gateway_id}")

    def associate_route_table(self, route_table_id: str, subnet_id: str) -> str:
        """
        Associate a subnet with a route table.

        Returns:
            Association ID, or an empty string if the subnet was already
            associated with this table
        """
        try:
            response = self.ec2.associate_route_table(RouteTableId=route_table_id, SubnetId=subnet_id)
        except ClientError as e:
            if _error_code(e) != "Resource.AlreadyAssociated":
                raise
            logger.info(f"Route table {route_table_id} already associated with {subnet_id}")
            return ""
        logger.info(f"Route table {route_table_id} associated with {subnet_id}")
        return response.get("AssociationId", "")

    def disassociate_route_table(self, route_table_id: str) -> int:
        """
        Remove every explicit subnet association from a route table.

        Returns:
            Number of associations removed
        """
        response = self.ec2.describe_route_tables(RouteTableIds=[route_table_id])
        removed = 0
        for table in response.get("RouteTables", []):
            for assoc in table.get("Associations", []):
                if assoc.get("Main"):
                    continue
                self.ec2.disassociate_route_table(AssociationId=assoc["RouteTableAssociationId"])
                removed += 1
        logger.info(f"Removed {removed} associations from {route_table_id}")
        return removed

    def delete_route_table(self, route_table_id: str) -> None:
        self.ec2.delete_route_table(RouteTableId=route_table_id)
        logger.info(f"Route table deleted: {route_table_id}")

    # Elastic IP

    def allocate_address(self) -> str:
        response = self.ec2.allocate_address(Domain="vpc")
        allocation_id = response["AllocationId"]
        logger.info(f"Elastic IP allocated: {allocation_id}")
        return allocation_id

    def release_address(self, allocation_id: str) -> None:
        self.ec2.release_address(AllocationId=allocation_id)
        logger.info(f"Elastic IP released: {allocation_id}")

    # NAT gateway

    def create_nat_gateway(self, subnet_id: str, allocation_id: str, name: str) -> str:
        response = self.ec2.create_nat_gateway(
            SubnetId=subnet_id,
            AllocationId=allocation_id,
            TagSpecifications=tag_specifications("natgateway", named(self.tags, name)),
        )
        nat_id = response["NatGateway"]["NatGatewayId"]
        logger.info(f"NAT Gateway created: {nat_id}")
        return nat_id

    def delete_nat_gateway(self, nat_gateway_id: str) -> None:
        self.ec2.delete_nat_gateway(NatGatewayId=nat_gateway_id)
        logger.info(f"NAT Gateway deletion requested: {nat_gateway_id}")

    def nat_gateway_state(self, nat_gateway_id: str) -> str:
        """
        Get the current state of a NAT gateway.

        Returns:
            One of pending, available, failed, deleting, deleted. A gateway
            the API no longer knows about is reported as deleted.
        """
        try:
            response = self.ec2.describe_nat_gateways(NatGatewayIds=[nat_gateway_id])
        except ClientError as e:
            if _error_code(e) == "NatGatewayNotFound":
                return "deleted"
            raise

        gateways = response.get("NatGateways", [])
        if not gateways:
            return "deleted"
        return gateways[0].get("State", "pending")
