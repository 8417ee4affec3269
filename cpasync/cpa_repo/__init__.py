"""Client for the CPA repository service."""
