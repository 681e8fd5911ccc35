"""
Admin Console
=============

Administrative API in front of the tenant service:
- JWT bearer authentication of the caller identity
- Append-only audit log in PostgreSQL
- Tenant update operations forwarded to the tenant service once audited
"""

__version__ = "1.0.0"
__author__ = "Admin Console Team"
