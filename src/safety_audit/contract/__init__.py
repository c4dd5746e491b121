"""Published report contract and error reason codes."""
