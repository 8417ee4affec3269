"""CPA sync: keeps the CPA repository in step with the CPA file share."""
