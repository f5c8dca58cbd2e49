"""HTTP API for the deployment orchestrator."""
