#!/usr/bin/env python3
"""Generate AWS architecture diagrams for the Prisma Lambda stack.

This script uses the `diagrams` library to render the deployed stack and the
layer build flow with official AWS icons. Run this script to regenerate
diagrams after architecture changes.

Requirements:
    pip install -e ".[docs]"

Usage:
    python aws_architecture.py

Output:
    - aws_architecture.png: Deployed stack
    - layer_build.png: Prisma layer bundling steps
"""

import argparse

from diagrams import Cluster, Diagram, Edge
from diagrams.aws.compute import Lambda
from diagrams.aws.database import Aurora
from diagrams.aws.network import NATGateway, PrivateSubnet, PublicSubnet
from diagrams.aws.security import SecretsManager
from diagrams.generic.storage import Storage
from diagrams.onprem.client import Users
from diagrams.programming.language import Nodejs, Python

# ============================================================================
# SIZE PRESETS
# ============================================================================
# All sizes are in inches (Graphviz).

SIZE_PRESETS = {
    "small": {
        "node_width": "1.0",
        "node_height": "1.0",
        "fontsize": "10",
        "title_fontsize": "16",
    },
    "medium": {
        "node_width": "1.5",
        "node_height": "1.5",
        "fontsize": "12",
        "title_fontsize": "20",
    },
    "large": {
        "node_width": "2.0",
        "node_height": "2.0",
        "fontsize": "14",
        "title_fontsize": "24",
    },
}

DEFAULT_SIZE = "medium"


def get_diagram_attrs(size: str = DEFAULT_SIZE) -> tuple[dict, dict]:
    """Get graph and node attributes for the given size preset."""
    preset = SIZE_PRESETS.get(size, SIZE_PRESETS[DEFAULT_SIZE])
    graph_attr = {
        "fontsize": preset["title_fontsize"],
        "bgcolor": "white",
        "pad": "0.5",
        "splines": "ortho",
    }
    node_attr = {
        "width": preset["node_width"],
        "height": preset["node_height"],
        "fontsize": preset["fontsize"],
    }
    return graph_attr, node_attr


def create_stack_architecture(size: str = DEFAULT_SIZE):
    """Create the deployed stack diagram."""
    graph_attr, node_attr = get_diagram_attrs(size)
    with Diagram(
        "Prisma Lambda Stack - AWS Architecture",
        filename="aws_architecture",
        show=False,
        direction="TB",
        graph_attr=graph_attr,
        node_attr=node_attr,
    ):
        clients = Users("Clients")

        with Cluster("AWS Cloud"):
            with Cluster("EpicVpc"):
                with Cluster("Public Subnets"):
                    public = PublicSubnet("Public")
                    nat = NATGateway("NAT Gateway")

                with Cluster("EpicSecurityGroup"):
                    with Cluster("Private Subnets"):
                        private = PrivateSubnet("Private")
                        user_service = Lambda("user-service\n(nodejs16.x)")

                    with Cluster("Isolated + Private Subnets"):
                        aurora = Aurora("Aurora PostgreSQL 13.6\nEpicDatabase")

            layer = Lambda("prisma-layer\n(LayerVersion)")
            secrets = SecretsManager("Master password\n(RDS-managed)")

        clients >> Edge(label="Function URL") >> user_service
        layer >> Edge(style="dashed", label="attached") >> user_service
        user_service >> Edge(label="5432") >> aurora
        aurora >> secrets
        private >> nat >> public


def create_layer_build(size: str = DEFAULT_SIZE):
    """Create the layer bundling flow diagram."""
    graph_attr, node_attr = get_diagram_attrs(size)
    with Diagram(
        "Prisma Layer Build",
        filename="layer_build",
        show=False,
        direction="LR",
        graph_attr=graph_attr,
        node_attr=node_attr,
    ):
        source = Storage("src/layers/prisma\n(npm install)")

        with Cluster("python -m bundler build"):
            copy = Python("1. Copy manifest,\nlockfile, client,\nschema, node_modules")
            clean = Python("2. Remove caches")
            prune = Python("3. Prune foreign\nplatform binaries")
            generate = Nodejs("4. npx prisma generate")
            measure = Python("5. Size check\n+ digest")

        artifact = Storage("build/layers/prisma")
        layer = Lambda("prisma-layer")

        source >> copy >> clean >> prune >> generate >> measure >> artifact
        artifact >> Edge(label="pulumi up") >> layer


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate AWS architecture diagrams")
    parser.add_argument(
        "--size",
        choices=sorted(SIZE_PRESETS),
        default=DEFAULT_SIZE,
        help=f"Icon size preset (default: {DEFAULT_SIZE})",
    )
    args = parser.parse_args()

    print(f"Generating architecture diagrams (size: {args.size})...")
    create_stack_architecture(args.size)
    print("✓ aws_architecture.png")
    create_layer_build(args.size)
    print("✓ layer_build.png")
    print("\nDone! Diagrams saved to current directory.")
