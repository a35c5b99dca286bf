"""Pre-anesthetic assessment portal backend."""
