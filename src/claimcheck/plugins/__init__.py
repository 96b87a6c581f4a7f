"""Transport implementations for concrete storage services."""
