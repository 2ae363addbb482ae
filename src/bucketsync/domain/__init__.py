"""Pure reconciliation domain: manifests, metadata, ports and policy."""
