"""Pure domain vocabulary: statuses, clocks, input objects and patches."""
