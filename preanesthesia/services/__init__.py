"""Services package for the assessment portal."""
