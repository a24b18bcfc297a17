"""latctl - inspect plugin dependency manifests."""
