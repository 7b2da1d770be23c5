"""Step editors, registry and the config panel."""
