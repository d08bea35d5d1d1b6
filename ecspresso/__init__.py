"""Building blocks for Amazon ECS deployments: ARNs and tags, definition JSON, registry checks and verification."""

__version__ = "2.0.0"