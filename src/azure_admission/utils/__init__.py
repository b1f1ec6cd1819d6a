"""
Utility modules for the admission controller.
"""
