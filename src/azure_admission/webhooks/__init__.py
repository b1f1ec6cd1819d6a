"""
Admission webhooks for Cluster API resources on Azure.

This package provides validating webhooks for Cluster, AzureCluster,
AzureMachinePool and AzureMachine resources, and a mutating webhook for
AzureCluster. Each kind is described by a policy registered in the dispatch
table of ``webhooks.common``; the kopf handlers only route to it.

Webhooks are served by Kopf's built-in HTTPS server.
"""
