"""Search index access: REST client and bulk synchronizer."""
