"""VPC Component - Network foundation for the Prisma stack.

Creates a VPC with three subnet tiers in each availability zone:
- Public subnets: NAT gateways
- Private subnets: Lambda functions and database instances (egress via NAT)
- Isolated subnets: Database instances (no route out of the VPC)

Also owns the shared security group that the function and the database
cluster sit behind.
"""

import ipaddress

import pulumi
import pulumi_aws as aws


class VPCComponent(pulumi.ComponentResource):
    """VPC with public/private/isolated subnets and a shared security group."""

    def __init__(
        self,
        name: str,
        environment: str,
        vpc_name: str = "EpicVpc",
        security_group_name: str = "EpicSecurityGroup",
        cidr_block: str = "10.0.0.0/16",
        az_count: int = 2,
        availability_zones: list[str] | None = None,
        tags: dict | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        if availability_zones is None:
            available_azs = aws.get_availability_zones(state="available")
            availability_zones = available_azs.names[:az_count]
        az_names = list(availability_zones)

        # Three /20 blocks per AZ: public, private, isolated
        blocks = list(ipaddress.ip_network(cidr_block).subnets(new_prefix=20))
        if len(blocks) < 3 * len(az_names):
            raise ValueError(
                f"CIDR block {cidr_block} is too small for {len(az_names)} availability zones"
            )

        super().__init__("prismastack:network:VPC", name, None, opts)

        self.tags = tags or {}
        self.environment = environment

        self.vpc = aws.ec2.Vpc(
            f"{name}-vpc",
            cidr_block=cidr_block,
            enable_dns_hostnames=True,
            enable_dns_support=True,
            tags={**self.tags, "Name": vpc_name},
            opts=pulumi.ResourceOptions(parent=self),
        )

        # Internet Gateway for public subnets
        self.igw = aws.ec2.InternetGateway(
            f"{name}-igw",
            vpc_id=self.vpc.id,
            tags={**self.tags, "Name": f"{vpc_name}-igw"},
            opts=pulumi.ResourceOptions(parent=self),
        )

        self.public_subnets: list[aws.ec2.Subnet] = []
        self.private_subnets: list[aws.ec2.Subnet] = []
        self.isolated_subnets: list[aws.ec2.Subnet] = []
        self.nat_gateways: list[aws.ec2.NatGateway] = []

        for i, az in enumerate(az_names):
            public_subnet = aws.ec2.Subnet(
                f"{name}-public-{i}",
                vpc_id=self.vpc.id,
                cidr_block=str(blocks[i]),
                availability_zone=az,
                map_public_ip_on_launch=True,
                tags={**self.tags, "Name": f"{vpc_name}-public-{az}"},
                opts=pulumi.ResourceOptions(parent=self),
            )
            self.public_subnets.append(public_subnet)

            private_subnet = aws.ec2.Subnet(
                f"{name}-private-{i}",
                vpc_id=self.vpc.id,
                cidr_block=str(blocks[len(az_names) + i]),
                availability_zone=az,
                tags={**self.tags, "Name": f"{vpc_name}-private-{az}"},
                opts=pulumi.ResourceOptions(parent=self),
            )
            self.private_subnets.append(private_subnet)

            isolated_subnet = aws.ec2.Subnet(
                f"{name}-isolated-{i}",
                vpc_id=self.vpc.id,
                cidr_block=str(blocks[2 * len(az_names) + i]),
                availability_zone=az,
                tags={**self.tags, "Name": f"{vpc_name}-isolated-{az}"},
                opts=pulumi.ResourceOptions(parent=self),
            )
            self.isolated_subnets.append(isolated_subnet)

            # One NAT gateway per AZ, or a single one in dev
            if environment != "dev" or i == 0:
                eip = aws.ec2.Eip(
                    f"{name}-eip-{i}",
                    domain="vpc",
                    tags={**self.tags, "Name": f"{vpc_name}-nat-eip-{az}"},
                    opts=pulumi.ResourceOptions(parent=self),
                )

                nat = aws.ec2.NatGateway(
                    f"{name}-nat-{i}",
                    subnet_id=public_subnet.id,
                    allocation_id=eip.id,
                    tags={**self.tags, "Name": f"{vpc_name}-nat-{az}"},
                    opts=pulumi.ResourceOptions(parent=self, depends_on=[self.igw]),
                )
                self.nat_gateways.append(nat)

        # Public route table - routes to Internet Gateway
        self.public_rt = aws.ec2.RouteTable(
            f"{name}-public-rt",
            vpc_id=self.vpc.id,
            routes=[
                aws.ec2.RouteTableRouteArgs(
                    cidr_block="0.0.0.0/0",
                    gateway_id=self.igw.id,
                ),
            ],
            tags={**self.tags, "Name": f"{vpc_name}-public-rt"},
            opts=pulumi.ResourceOptions(parent=self),
        )

        for i, subnet in enumerate(self.public_subnets):
            aws.ec2.RouteTableAssociation(
                f"{name}-public-rta-{i}",
                subnet_id=subnet.id,
                route_table_id=self.public_rt.id,
                opts=pulumi.ResourceOptions(parent=self),
            )

        # Private route tables - route to NAT Gateway
        self.private_rts: list[aws.ec2.RouteTable] = []
        for i, subnet in enumerate(self.private_subnets):
            nat_index = min(i, len(self.nat_gateways) - 1)

            private_rt = aws.ec2.RouteTable(
                f"{name}-private-rt-{i}",
                vpc_id=self.vpc.id,
                routes=[
                    aws.ec2.RouteTableRouteArgs(
                        cidr_block="0.0.0.0/0",
                        nat_gateway_id=self.nat_gateways[nat_index].id,
                    ),
                ],
                tags={**self.tags, "Name": f"{vpc_name}-private-rt-{i}"},
                opts=pulumi.ResourceOptions(parent=self),
            )
            self.private_rts.append(private_rt)

            aws.ec2.RouteTableAssociation(
                f"{name}-private-rta-{i}",
                subnet_id=subnet.id,
                route_table_id=private_rt.id,
                opts=pulumi.ResourceOptions(parent=self),
            )

        # Isolated route table - local routes only
        self.isolated_rt = aws.ec2.RouteTable(
            f"{name}-isolated-rt",
            vpc_id=self.vpc.id,
            tags={**self.tags, "Name": f"{vpc_name}-isolated-rt"},
            opts=pulumi.ResourceOptions(parent=self),
        )

        for i, subnet in enumerate(self.isolated_subnets):
            aws.ec2.RouteTableAssociation(
                f"{name}-isolated-rta-{i}",
                subnet_id=subnet.id,
                route_table_id=self.isolated_rt.id,
                opts=pulumi.ResourceOptions(parent=self),
            )

        # Shared security boundary: all egress, no ingress unless added
        self.security_group = aws.ec2.SecurityGroup(
            f"{name}-sg",
            name=security_group_name,
            vpc_id=self.vpc.id,
            description=f"Shared security group for {vpc_name}",
            egress=[
                aws.ec2.SecurityGroupEgressArgs(
                    protocol="-1",
                    from_port=0,
                    to_port=0,
                    cidr_blocks=["0.0.0.0/0"],
                    description="Allow all outbound traffic",
                )
            ],
            tags={**self.tags, "Name": security_group_name},
            opts=pulumi.ResourceOptions(parent=self),
        )

        self.public_subnet_ids = pulumi.Output.all(
            *[s.id for s in self.public_subnets]
        ).apply(lambda ids: list(ids))

        self.private_subnet_ids = pulumi.Output.all(
            *[s.id for s in self.private_subnets]
        ).apply(lambda ids: list(ids))

        self.isolated_subnet_ids = pulumi.Output.all(
            *[s.id for s in self.isolated_subnets]
        ).apply(lambda ids: list(ids))

        self.register_outputs(
            {
                "vpc_id": self.vpc.id,
                "security_group_id": self.security_group.id,
                "public_subnet_ids": self.public_subnet_ids,
                "private_subnet_ids": self.private_subnet_ids,
                "isolated_subnet_ids": self.isolated_subnet_ids,
            }
        )
