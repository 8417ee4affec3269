"""Domain services for CPA sync and activation."""
