"""Adapters binding the reconciliation ports to files, git, HTTP and the console."""
