from nanode_builder.builder import build_and_upload
from nanode_builder.variant import BuildConfiguration, compute_identity

__all__ = ["BuildConfiguration", "build_and_upload", "compute_identity"]
