"""HTTP adapter for the job card service."""
