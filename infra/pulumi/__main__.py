"""Prisma Lambda Stack - Main Entry Point.

This module orchestrates the AWS infrastructure for a Node.js user service
backed by Aurora PostgreSQL and a Prisma dependency layer.

Architecture:
- Network: VPC with public/private/isolated subnets + one shared security group
- Database: Aurora PostgreSQL cluster
- Layer: Prisma dependency tree, bundled and pruned to the function's platform
- Function: Node.js Lambda in the VPC, exposed through a Function URL
"""

from pathlib import Path

import pulumi

from bundler.pipeline import bundle
from bundler.platforms import Platform
from common.config import get_settings
from components.database import DatabaseComponent
from components.function import UserServiceComponent
from components.layer import PrismaLayerComponent
from components.vpc import VPCComponent

REPO_ROOT = Path(__file__).resolve().parents[2]

# Get configuration
config = pulumi.Config()
aws_config = pulumi.Config("aws")
environment = pulumi.get_stack()  # dev, staging, or prod
aws_region = aws_config.require("region")

# The Function URL auth type has no default; it must be chosen per stack
function_url_auth_type = config.require("function_url_auth_type")
function_architecture = config.get("function_architecture") or "x86_64"
database_ingress_from_boundary = config.get_bool("database_ingress_from_boundary") or False

layer_source_dir = REPO_ROOT / (config.get("layer_source_dir") or "src/layers/prisma")
layer_output_dir = REPO_ROOT / (config.get("layer_output_dir") or "build/layers/prisma")
function_code_dir = REPO_ROOT / (config.get("function_code_dir") or "src/lambda/userService")

# Common tags for all resources
common_tags = {
    "Project": "prisma-lambda-stack",
    "Environment": environment,
    "ManagedBy": "pulumi",
}

# =============================================================================
# VPC - Network Foundation
# =============================================================================
vpc = VPCComponent(
    f"{environment}-vpc",
    environment=environment,
    vpc_name=config.get("vpc_name") or "EpicVpc",
    security_group_name=config.get("security_group_name") or "EpicSecurityGroup",
    cidr_block=config.get("vpc_cidr") or "10.0.0.0/16",
    az_count=config.get_int("az_count") or 2,
    tags=common_tags,
)

# =============================================================================
# Database - Aurora PostgreSQL
# =============================================================================
database = DatabaseComponent(
    f"{environment}-database",
    environment=environment,
    subnet_ids=pulumi.Output.all(vpc.isolated_subnet_ids, vpc.private_subnet_ids).apply(
        lambda ids: ids[0] + ids[1]
    ),
    security_group_id=vpc.security_group.id,
    database_name=config.get("database_name") or "EpicDatabase",
    instance_class=config.get("database_instance_class") or "db.t3.medium",
    instance_count=config.get_int("database_instances") or 1,
    allow_ingress_from_security_group=database_ingress_from_boundary,
    tags=common_tags,
)

# =============================================================================
# Prisma Layer - bundled for the function's platform before deploy
# =============================================================================
settings = get_settings()
artifact = bundle(
    layer_source_dir,
    Platform.for_lambda_architecture(function_architecture),
    layer_output_dir,
    settings=settings,
)
pulumi.log.info(
    f"Bundled Prisma layer for {artifact.target_platform}: "
    f"{artifact.size_bytes} bytes, digest {artifact.digest[:12]}"
)

prisma_layer = PrismaLayerComponent(
    f"{environment}-prisma-layer",
    artifact=artifact,
)

# =============================================================================
# User Service - Lambda + Function URL
# =============================================================================
user_service = UserServiceComponent(
    f"{environment}-user-service",
    code_dir=str(function_code_dir),
    subnet_ids=vpc.private_subnet_ids,
    security_group_id=vpc.security_group.id,
    layer_arns=[prisma_layer.layer_version_arn],
    region=aws_region,
    function_url_auth_type=function_url_auth_type,
    architecture=function_architecture,
    tags=common_tags,
)

# =============================================================================
# Exports
# =============================================================================
pulumi.export("vpc_id", vpc.vpc.id)
pulumi.export("security_group_id", vpc.security_group.id)
pulumi.export("cluster_hostname", database.endpoint)
pulumi.export("prisma_layer_version_arn", prisma_layer.layer_version_arn)
pulumi.export("user_function_arn", user_service.function.arn)
pulumi.export("user_function_url", user_service.url)
