"""Domain models and value types for incubator monitoring."""
