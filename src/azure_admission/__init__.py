"""
Azure Admission Controller - admission gate for cluster-lifecycle resources.

Before a change to a Cluster, AzureCluster, AzureMachine or AzureMachinePool
is accepted, this controller decides whether it is permitted and, for
mutating requests, which default field values must be injected:
- Release upgrade path validation against the installed release catalog
- VM size capability checks backed by the Azure Resource SKU inventory
- Minimal JSON patches for defaulted resources
"""

__version__ = "0.1.0"
