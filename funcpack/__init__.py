"""funcpack - Build and package serverless functions from a module tree.

This package discovers functions laid out as ``<module>/<function>.<ext>``,
bundles each one with an external compiler, archives the outputs as
individual zip artifacts, and caches the expensive build phase so a
deployment can be re-run without rebuilding.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
