"""ActivityPub federation engine for a single-actor bookmark server."""
