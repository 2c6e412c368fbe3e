"""
Pipeline Mapper
===============

Graph engine behind the visual data-pipeline editor.
"""

__version__ = "1.0.0"
