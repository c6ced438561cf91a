"""Claude agent session runner: request building, stream collection and projections."""
