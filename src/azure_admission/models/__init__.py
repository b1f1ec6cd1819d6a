"""
Models package - Pydantic models for type-safe resource handling.

Defines data models for:
- Release catalog records
- Cluster API Cluster and AzureCluster resources
- AzureMachinePool and AzureMachine resources
- Azure Resource SKU capabilities
- JSON Patch operations
"""
