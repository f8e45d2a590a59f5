"""
Workflow Gateway Service package.

The gateway exposes every stored workflow configuration as a public,
method-flexible endpoint that forwards calls to the upstream
workflow-execution API:

- Resolution: workflow configurations are read from PostgreSQL
- Parameters: caller parameters are merged over stored defaults
- Credentials: stored tokens are normalized into bearer headers
- Auditing: every call is recorded in the background with retry

Structure:
- app.main: FastAPI app, routes, and lifecycle wiring.
- app.adapters: HTTP client for the upstream workflow API.
- app.domain: Models, parameter merging, credentials, transform, orchestrator.
- app.persistence: Pooled storage access and table stores.
- app.recording: Background execution-record writer.
- app.auth: Console token verification.
"""
