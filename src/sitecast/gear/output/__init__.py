"""Inline and on-disk delivery of capture results."""

from .materializer import MaterializedOutput, OutputMaterializer, generate_filename

__all__ = ["MaterializedOutput", "OutputMaterializer", "generate_filename"]
