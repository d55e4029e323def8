"""Services for the runner core."""
