"""
Config Analyzer - map variable-sharing dependencies between projects.

Reads each project's variable-sharing documents, works out which
projects consume values that other projects produce, and renders the
result as a dependency graph.
"""

import os

__version__ = "0.1.0"

ANALYZER_HOME = os.environ.get("CONFIGANALYZER_HOME", "~/.configanalyzer")
