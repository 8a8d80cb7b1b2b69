"""Detection state machine and the reading/event value types."""
