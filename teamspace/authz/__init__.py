"""Authorization layer: the GitHub team allow-list gate (env/ConfigMap driven)."""
