"""Database Component - Aurora PostgreSQL for the Prisma stack.

Creates an Aurora PostgreSQL cluster in the VPC's private and isolated
subnets, behind the shared security group. The master password is managed
by RDS in Secrets Manager.
"""

import pulumi
import pulumi_aws as aws


class DatabaseComponent(pulumi.ComponentResource):
    """Aurora PostgreSQL cluster.

    Features:
    - Provisioned instances (db.t3.medium by default)
    - Storage encryption
    - RDS-managed master credentials
    - Optional PostgreSQL ingress from members of the shared security group
    """

    def __init__(
        self,
        name: str,
        environment: str,
        subnet_ids: pulumi.Input[list[str]],
        security_group_id: pulumi.Input[str],
        database_name: str = "EpicDatabase",
        engine_version: str = "13.6",
        instance_class: str = "db.t3.medium",
        instance_count: int = 1,
        master_username: str = "postgres",
        allow_ingress_from_security_group: bool = False,
        tags: dict | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        if instance_count < 1:
            raise ValueError(f"instance_count must be at least 1, got {instance_count}")

        super().__init__("prismastack:database:AuroraPostgreSQL", name, None, opts)

        self.tags = tags or {}
        self.environment = environment

        # DB subnet group (private + isolated subnets)
        self.subnet_group = aws.rds.SubnetGroup(
            f"{name}-subnet-group",
            subnet_ids=subnet_ids,
            description=f"Subnet group for {name} database",
            tags={**self.tags, "Name": f"{name}-subnet-group"},
            opts=pulumi.ResourceOptions(parent=self),
        )

        # The shared group carries no ingress of its own
        self.ingress_rule = None
        if allow_ingress_from_security_group:
            self.ingress_rule = aws.ec2.SecurityGroupRule(
                f"{name}-ingress",
                type="ingress",
                from_port=5432,
                to_port=5432,
                protocol="tcp",
                security_group_id=security_group_id,
                self=True,
                description="PostgreSQL from members of the shared security group",
                opts=pulumi.ResourceOptions(parent=self),
            )

        self.cluster = aws.rds.Cluster(
            f"{name}-cluster",
            engine=aws.rds.EngineType.AURORA_POSTGRESQL,
            engine_version=engine_version,
            database_name=database_name,
            master_username=master_username,
            manage_master_user_password=True,
            db_subnet_group_name=self.subnet_group.name,
            vpc_security_group_ids=[security_group_id],
            storage_encrypted=True,
            skip_final_snapshot=self.environment != "prod",
            final_snapshot_identifier=f"{name}-{self.environment}-final"
            if self.environment == "prod"
            else None,
            deletion_protection=self.environment == "prod",
            tags={**self.tags, "Name": f"{name}-cluster"},
            opts=pulumi.ResourceOptions(parent=self),
        )

        self.instances: list[aws.rds.ClusterInstance] = []
        for i in range(instance_count):
            instance = aws.rds.ClusterInstance(
                f"{name}-instance-{i}",
                cluster_identifier=self.cluster.id,
                instance_class=instance_class,
                engine=aws.rds.EngineType.AURORA_POSTGRESQL,
                engine_version=self.cluster.engine_version,
                publicly_accessible=False,
                db_subnet_group_name=self.subnet_group.name,
                tags={**self.tags, "Name": f"{name}-instance-{i}"},
                opts=pulumi.ResourceOptions(parent=self),
            )
            self.instances.append(instance)

        self.endpoint = self.cluster.endpoint
        self.port = self.cluster.port

        self.register_outputs(
            {
                "endpoint": self.endpoint,
                "port": self.port,
                "database_name": database_name,
                "master_user_secret": self.cluster.master_user_secrets,
            }
        )
