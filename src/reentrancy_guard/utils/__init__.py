"""
Utilities: console/logging integration and graph visualization.
"""
