"""Quality assurance: structural validation, semantic leakage detection and the delivery gate."""
