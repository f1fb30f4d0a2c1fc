"""Model and metadata modules laid out by the registry naming convention."""
