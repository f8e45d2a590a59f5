"""
Workflow execution gateway for the management console.
"""
