"""
Tests package - Test suite for the Azure admission controller.

Contains:
- unit/: Unit tests for the decision engines and admission webhooks
- fixtures/: Builders for Cluster API resources and Azure SKU entries
"""
