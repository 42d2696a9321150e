"""
Core bootstrap engine.

The `BootstrapOrchestrator` drives a run through its phases: it loads the
manifests through the `ManifestSource`, plans the file changes with
`build_plan`, hands the plan to the `SyncExecutor`, and finally constructs
and starts the application. Failures are judged by the `ErrorPolicyGate`.
"""
