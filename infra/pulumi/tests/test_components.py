"""Unit tests for the Pulumi components, run against pulumi mocks."""

from pathlib import Path

import pulumi
import pytest


class PrismaStackMocks(pulumi.runtime.Mocks):
    """Echo inputs back as outputs, filling in attributes AWS would compute."""

    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        outputs = dict(args.inputs)
        if args.typ == "aws:rds/cluster:Cluster":
            outputs["endpoint"] = f"{args.name}.cluster-abc.us-east-1.rds.amazonaws.com"
            outputs["port"] = 5432
        if args.typ == "aws:lambda/functionUrl:FunctionUrl":
            outputs["functionUrl"] = "https://abc123.lambda-url.us-east-1.on.aws/"
        outputs.setdefault("arn", f"arn:aws:mock:us-east-1:123456789012:{args.name}")
        return [f"{args.name}_id", outputs]

    def call(self, args: pulumi.runtime.MockCallArgs):
        return {}


pulumi.runtime.set_mocks(PrismaStackMocks(), preview=False)

from bundler.artifact import ArtifactDirectory  # noqa: E402
from bundler.platforms import Platform  # noqa: E402
from components.database import DatabaseComponent  # noqa: E402
from components.function import UserServiceComponent  # noqa: E402
from components.layer import PrismaLayerComponent  # noqa: E402
from components.vpc import VPCComponent  # noqa: E402

AZS = ["us-east-1a", "us-east-1b"]
DIGEST = "3f2a9c41d07be5a8" + "0" * 48


def make_artifact(platform: Platform = Platform.LINUX_X64) -> ArtifactDirectory:
    return ArtifactDirectory(
        path=Path("/tmp/build/layers/prisma"),
        target_platform=platform,
        digest=DIGEST,
        size_bytes=48_000_000,
        file_count=1200,
    )


def make_user_service(auth_type: str) -> UserServiceComponent:
    return UserServiceComponent(
        f"test-user-service-{auth_type.lower()}",
        code_dir="/tmp/src/lambda/userService",
        subnet_ids=["subnet-a", "subnet-b"],
        security_group_id="sg-123",
        layer_arns=["arn:aws:lambda:us-east-1:123456789012:layer:prisma-layer:1"],
        region="us-east-1",
        function_url_auth_type=auth_type,
    )


class TestVPCComponent:
    """Tests for VPCComponent."""

    @pulumi.runtime.test
    def test_creates_three_subnet_tiers_per_az(self):
        """Test that each AZ gets a public, private and isolated subnet."""
        vpc = VPCComponent("test-vpc", environment="dev", availability_zones=AZS)

        assert len(vpc.public_subnets) == 2
        assert len(vpc.private_subnets) == 2
        assert len(vpc.isolated_subnets) == 2
        assert len(vpc.nat_gateways) == 1

        def check(cidrs):
            assert cidrs == [
                "10.0.0.0/20",
                "10.0.16.0/20",
                "10.0.32.0/20",
                "10.0.48.0/20",
                "10.0.64.0/20",
                "10.0.80.0/20",
            ]

        subnets = vpc.public_subnets + vpc.private_subnets + vpc.isolated_subnets
        return pulumi.Output.all(*[s.cidr_block for s in subnets]).apply(check)

    @pulumi.runtime.test
    def test_nat_gateway_per_az_outside_dev(self):
        """Test that non-dev stacks get one NAT gateway per AZ."""
        vpc = VPCComponent("test-vpc-prod", environment="prod", availability_zones=AZS)
        assert len(vpc.nat_gateways) == 2

    @pulumi.runtime.test
    def test_security_group_allows_egress_only(self):
        """Test that the shared security group has no ingress of its own."""
        vpc = VPCComponent("test-vpc-sg", environment="dev", availability_zones=AZS)

        def check(args):
            name, ingress, egress, vpc_tags = args
            assert name == "EpicSecurityGroup"
            assert not ingress
            assert len(egress) == 1
            assert vpc_tags["Name"] == "EpicVpc"

        return pulumi.Output.all(
            vpc.security_group.name,
            vpc.security_group.ingress,
            vpc.security_group.egress,
            vpc.vpc.tags,
        ).apply(check)

    def test_rejects_cidr_too_small(self):
        """Test that the CIDR block must fit three subnets per AZ."""
        with pytest.raises(ValueError, match="too small"):
            VPCComponent(
                "test-vpc-small",
                environment="dev",
                cidr_block="10.0.0.0/20",
                availability_zones=AZS,
            )


class TestDatabaseComponent:
    """Tests for DatabaseComponent."""

    @pulumi.runtime.test
    def test_aurora_cluster_settings(self):
        """Test engine version, database name, encryption and managed password."""
        db = DatabaseComponent(
            "test-db",
            environment="dev",
            subnet_ids=["subnet-a", "subnet-b"],
            security_group_id="sg-123",
        )
        assert len(db.instances) == 1
        assert db.ingress_rule is None

        def check(args):
            engine_version, database_name, encrypted, managed, endpoint, instance_class = args
            assert engine_version == "13.6"
            assert database_name == "EpicDatabase"
            assert encrypted is True
            assert managed is True
            assert endpoint.startswith("test-db-cluster.")
            assert instance_class == "db.t3.medium"

        return pulumi.Output.all(
            db.cluster.engine_version,
            db.cluster.database_name,
            db.cluster.storage_encrypted,
            db.cluster.manage_master_user_password,
            db.endpoint,
            db.instances[0].instance_class,
        ).apply(check)

    @pulumi.runtime.test
    def test_ingress_from_security_group_is_opt_in(self):
        """Test that the PostgreSQL ingress rule exists only when requested."""
        db = DatabaseComponent(
            "test-db-ingress",
            environment="dev",
            subnet_ids=["subnet-a"],
            security_group_id="sg-123",
            allow_ingress_from_security_group=True,
        )
        assert db.ingress_rule is not None

        def check(args):
            from_port, to_port, security_group_id = args
            assert (from_port, to_port) == (5432, 5432)
            assert security_group_id == "sg-123"

        return pulumi.Output.all(
            db.ingress_rule.from_port,
            db.ingress_rule.to_port,
            db.ingress_rule.security_group_id,
        ).apply(check)

    def test_rejects_zero_instances(self):
        """Test that at least one instance is required."""
        with pytest.raises(ValueError, match="at least 1"):
            DatabaseComponent(
                "test-db-empty",
                environment="dev",
                subnet_ids=["subnet-a"],
                security_group_id="sg-123",
                instance_count=0,
            )


class TestPrismaLayerComponent:
    """Tests for PrismaLayerComponent."""

    @pulumi.runtime.test
    def test_layer_version_settings(self):
        """Test layer name, runtime, architecture and digest in the description."""
        layer = PrismaLayerComponent("test-layer", artifact=make_artifact())

        def check(args):
            layer_name, runtimes, architectures, description = args
            assert layer_name == "prisma-layer"
            assert runtimes == ["nodejs16.x"]
            assert architectures == ["x86_64"]
            assert "3f2a9c41d07b" in description
            assert "linux-x64" in description

        return pulumi.Output.all(
            layer.layer.layer_name,
            layer.layer.compatible_runtimes,
            layer.layer.compatible_architectures,
            layer.layer.description,
        ).apply(check)

    @pulumi.runtime.test
    def test_arm64_artifact(self):
        """Test that an arm64 artifact yields an arm64 layer."""
        layer = PrismaLayerComponent("test-layer-arm", artifact=make_artifact(Platform.LINUX_ARM64))
        assert layer.architecture == "arm64"

    def test_rejects_non_linux_artifact(self):
        """Test that a darwin artifact cannot become a Lambda layer."""
        with pytest.raises(ValueError, match="must target linux"):
            PrismaLayerComponent("test-layer-darwin", artifact=make_artifact(Platform.DARWIN_ARM64))


class TestUserServiceComponent:
    """Tests for UserServiceComponent."""

    @pulumi.runtime.test
    def test_function_settings(self):
        """Test runtime, handler, memory, timeout and layer wiring."""
        service = make_user_service("AWS_IAM")

        def check(args):
            name, runtime, handler, memory, timeout, layers = args
            assert name == "user-service"
            assert runtime == "nodejs16.x"
            assert handler == "main.handler"
            assert memory == 512
            assert timeout == 10
            assert layers == ["arn:aws:lambda:us-east-1:123456789012:layer:prisma-layer:1"]

        return pulumi.Output.all(
            service.function.name,
            service.function.runtime,
            service.function.handler,
            service.function.memory_size,
            service.function.timeout,
            service.function.layers,
        ).apply(check)

    @pulumi.runtime.test
    def test_public_url_grants_public_invoke(self):
        """Test that auth type NONE adds a public InvokeFunctionUrl permission."""
        service = make_user_service("NONE")
        assert service.public_permission is not None

        def check(args):
            auth_type, principal, action, url = args
            assert auth_type == "NONE"
            assert principal == "*"
            assert action == "lambda:InvokeFunctionUrl"
            assert url.startswith("https://")

        return pulumi.Output.all(
            service.function_url.authorization_type,
            service.public_permission.principal,
            service.public_permission.action,
            service.url,
        ).apply(check)

    @pulumi.runtime.test
    def test_iam_url_has_no_public_permission(self):
        """Test that auth type AWS_IAM adds no public permission."""
        service = make_user_service("AWS_IAM")
        assert service.public_permission is None

        def check(auth_type):
            assert auth_type == "AWS_IAM"

        return service.function_url.authorization_type.apply(check)

    def test_rejects_unknown_auth_type(self):
        """Test that the auth type must be explicit and known."""
        with pytest.raises(ValueError, match="function_url_auth_type"):
            make_user_service("")
