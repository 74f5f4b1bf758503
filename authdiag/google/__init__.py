"""Google implementations of the diagnostics collaborators."""
