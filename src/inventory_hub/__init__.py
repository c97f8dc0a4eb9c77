"""
InventoryHub

Multi-tenant inventory management backend. This package holds the tenant
context and isolation engine: tenant resolution, per-tenant data isolation,
subscription quotas and the audit trail of mutations.
"""

__version__ = "1.0.0"
__author__ = "InventoryHub Team"
