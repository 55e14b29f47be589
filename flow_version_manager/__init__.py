"""
Salesforce Flow Version Manager

Browse Flow definitions, pick inactive versions and delete them in bulk
through the Tooling API.
"""

__version__ = "1.0.0"
