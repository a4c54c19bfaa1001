"""Client for a Cloud Library catalog of OPC UA nodesets.

The graph query endpoint is used where the catalog supports it, with a
transparent REST fallback for listing and dependency resolution.
"""

__version__ = "0.1.0"
