"""CPA file store sessions."""
