"""User Service Component - Node.js Lambda with a Function URL."""

import json

import pulumi
import pulumi_aws as aws

FUNCTION_URL_AUTH_TYPES = ("NONE", "AWS_IAM")


class UserServiceComponent(pulumi.ComponentResource):
    """Lambda function serving the user API over a Function URL.

    This Lambda:
    - Runs from a local code directory with the Prisma layer attached
    - Sits in the private subnets behind the shared security group
    - Is exposed through a Function URL whose auth type must be chosen
      explicitly; NONE makes the URL publicly invocable
    """

    def __init__(
        self,
        name: str,
        code_dir: str,
        subnet_ids: pulumi.Input[list[str]],
        security_group_id: pulumi.Input[str],
        layer_arns: list[pulumi.Input[str]],
        region: str,
        function_url_auth_type: str,
        function_name: str = "user-service",
        runtime: str = "nodejs16.x",
        handler: str = "main.handler",
        architecture: str = "x86_64",
        memory_size: int = 512,
        timeout: int = 10,
        env_vars: dict | None = None,
        tags: dict | None = None,
        opts: pulumi.ResourceOptions | None = None,
    ):
        if function_url_auth_type not in FUNCTION_URL_AUTH_TYPES:
            raise ValueError(
                f"function_url_auth_type must be one of {FUNCTION_URL_AUTH_TYPES}, "
                f"got {function_url_auth_type!r}"
            )

        super().__init__("prismastack:compute:UserService", name, None, opts)

        self.tags = tags or {}
        self.function_url_auth_type = function_url_auth_type

        # IAM Role for Lambda
        self.role = aws.iam.Role(
            f"{name}-role",
            assume_role_policy=json.dumps(
                {
                    "Version": "2012-10-17",
                    "Statement": [
                        {
                            "Action": "sts:AssumeRole",
                            "Principal": {"Service": "lambda.amazonaws.com"},
                            "Effect": "Allow",
                        }
                    ],
                }
            ),
            tags=self.tags,
            opts=pulumi.ResourceOptions(parent=self),
        )

        # VPC access policy (includes CloudWatch Logs)
        self.vpc_policy = aws.iam.RolePolicyAttachment(
            f"{name}-vpc-exec",
            role=self.role.name,
            policy_arn="arn:aws:iam::aws:policy/service-role/AWSLambdaVPCAccessExecutionRole",
            opts=pulumi.ResourceOptions(parent=self),
        )

        # CloudWatch Log Group
        self.log_group = aws.cloudwatch.LogGroup(
            f"{name}-logs",
            name=f"/aws/lambda/{function_name}",
            retention_in_days=14,
            tags=self.tags,
            opts=pulumi.ResourceOptions(parent=self),
        )

        self.function = aws.lambda_.Function(
            f"{name}-func",
            name=function_name,
            runtime=runtime,
            handler=handler,
            code=pulumi.FileArchive(code_dir),
            role=self.role.arn,
            architectures=[architecture],
            layers=layer_arns,
            timeout=timeout,
            memory_size=memory_size,
            vpc_config=aws.lambda_.FunctionVpcConfigArgs(
                subnet_ids=subnet_ids,
                security_group_ids=[security_group_id],
            ),
            environment=aws.lambda_.FunctionEnvironmentArgs(
                variables={**(env_vars or {}), "REGION": region},
            ),
            tags=self.tags,
            opts=pulumi.ResourceOptions(
                parent=self, depends_on=[self.log_group, self.vpc_policy]
            ),
        )

        self.function_url = aws.lambda_.FunctionUrl(
            f"{name}-url",
            function_name=self.function.name,
            authorization_type=function_url_auth_type,
            opts=pulumi.ResourceOptions(parent=self),
        )

        # Unauthenticated URLs also need a resource policy allowing anyone
        self.public_permission = None
        if function_url_auth_type == "NONE":
            pulumi.log.warn(
                f"Function URL for {function_name} uses auth type NONE and is publicly invocable",
                resource=self,
            )
            self.public_permission = aws.lambda_.Permission(
                f"{name}-url-public",
                action="lambda:InvokeFunctionUrl",
                function=self.function.name,
                principal="*",
                function_url_auth_type="NONE",
                opts=pulumi.ResourceOptions(parent=self),
            )

        self.url = self.function_url.function_url

        self.register_outputs(
            {
                "function_name": self.function.name,
                "function_arn": self.function.arn,
                "function_url": self.function_url.function_url,
            }
        )
