"""Band plan and scan profile configuration tables."""
