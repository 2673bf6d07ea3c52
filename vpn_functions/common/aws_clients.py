"""
AWS client initialization utilities
"""
import boto3
from dataclasses import dataclass
from typing import Any, Optional


def get_acm_client(region: Optional[str] = None):
    """Get ACM client"""
    return boto3.client('acm', region_name=region)


def get_ssm_client(region: Optional[str] = None):
    """Get SSM client"""
    return boto3.client('ssm', region_name=region)


def get_ec2_client(region: Optional[str] = None):
    """Get EC2 client (Client VPN endpoints live under the EC2 API)"""
    return boto3.client('ec2', region_name=region)


def get_secretsmanager_client(region: Optional[str] = None):
    """Get Secrets Manager client"""
    return boto3.client('secretsmanager', region_name=region)


@dataclass
class AwsClients:
    """Service clients shared by the gateways of one invocation"""
    acm: Any
    ssm: Any
    ec2: Any
    secretsmanager: Any


def create_aws_clients(region: Optional[str] = None) -> AwsClients:
    """
    Build every client the VPN functions need

    Args:
        region: AWS region, defaults to the Lambda runtime region

    Returns:
        AwsClients bundle to inject into the gateways
    """
    return AwsClients(
        acm=get_acm_client(region),
        ssm=get_ssm_client(region),
        ec2=get_ec2_client(region),
        secretsmanager=get_secretsmanager_client(region),
    )
