"""Components package for Pulumi infrastructure.

Architecture:
- VPCComponent: VPC, subnets and the shared security group
- DatabaseComponent: Aurora PostgreSQL cluster
- PrismaLayerComponent: Lambda layer built from the bundled Prisma tree
- UserServiceComponent: Node.js Lambda + Function URL
"""

from components.database import DatabaseComponent
from components.function import UserServiceComponent
from components.layer import PrismaLayerComponent
from components.vpc import VPCComponent

__all__ = [
    "DatabaseComponent",
    "PrismaLayerComponent",
    "UserServiceComponent",
    "VPCComponent",
]
