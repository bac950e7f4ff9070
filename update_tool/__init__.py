"""update-tool: keep php builds and deployments on the latest upstream release."""
