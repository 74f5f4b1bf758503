"""Authentication diagnosis, recovery planning, token refresh and monitoring."""
