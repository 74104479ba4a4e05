"""Prisma Layer Component - Lambda layer built from a bundled artifact."""

import pulumi
import pulumi_aws as aws

from bundler.artifact import ArtifactDirectory
from bundler.platforms import Architecture, OperatingSystem

LAMBDA_ARCHITECTURES = {
    Architecture.X64: "x86_64",
    Architecture.ARM64: "arm64",
}


class PrismaLayerComponent(pulumi.ComponentResource):
    """Lambda layer holding the pruned Prisma dependency tree.

    The artifact is produced by `bundler.bundle()` before the program runs.
    Its digest goes into the layer description, so a changed tree always
    publishes a new layer version.
    """

    def __init__(
        self,
        name: str,
        artifact: ArtifactDirectory,
        layer_name: str = "prisma-layer",
        runtime: str = "nodejs16.x",
        opts: pulumi.ResourceOptions | None = None,
    ):
        if artifact.target_platform.os != OperatingSystem.LINUX:
            raise ValueError(
                f"Lambda layers must target linux, artifact targets {artifact.target_platform}"
            )

        super().__init__("prismastack:compute:PrismaLayer", name, None, opts)

        self.artifact = artifact
        self.architecture = LAMBDA_ARCHITECTURES[artifact.target_platform.arch]

        self.layer = aws.lambda_.LayerVersion(
            f"{name}-layer",
            layer_name=layer_name,
            code=pulumi.FileArchive(str(artifact.path)),
            compatible_runtimes=[runtime],
            compatible_architectures=[self.architecture],
            description=f"Prisma Layer ({artifact.target_platform}, {artifact.digest[:12]})",
            opts=pulumi.ResourceOptions(parent=self),
        )

        self.layer_version_arn = self.layer.arn

        self.register_outputs(
            {
                "layer_version_arn": self.layer.arn,
                "digest": artifact.digest,
                "size_bytes": artifact.size_bytes,
            }
        )
