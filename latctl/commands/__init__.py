"""latctl command implementations."""
