# ============================================================================
# PURVIEW OPERATIONS
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Operations - Purview data plane
# PURPOSE: Collection, data source and scan steps
# CREATED: 18 OCT 2026
# ============================================================================
"""
Purview operations.

Registered operations:
    purview.collection.ensure
    purview.datasource.ensure
    purview.scan.ensure
"""

from handlers.purview.collection import CollectionEnsure
from handlers.purview.datasource import DataSourceEnsure
from handlers.purview.scan import ScanEnsure

__all__ = ["CollectionEnsure", "DataSourceEnsure", "ScanEnsure"]
