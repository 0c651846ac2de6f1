"""Core workflow logic for course enrollments."""
