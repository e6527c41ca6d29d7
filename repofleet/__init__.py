"""repofleet: discover local git working trees and summarize their health."""

__version__ = "0.1.0"
