"""
Domain logic for the Workflow Gateway.

Pure request-processing pieces (parameter merging, credential
normalization, response transformation) plus the orchestrator that
sequences them around the upstream call. The orchestrator depends on the
adapters and stores, so it is imported from ``domain.orchestrator``
directly rather than re-exported here.
"""
