"""
vpcctl - Provision and tear down a two-tier AWS VPC from a local resource ledger.

This package provides a CLI for creating a VPC with public and private
subnets, an internet gateway, a NAT gateway and route tables, and for
deleting them again in reverse order.
"""

__version__ = "0.1.0"
__author__ = "vpcctl maintainers"
