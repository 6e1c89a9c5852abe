"""Client adapters for the chat CLI being diagnosed."""
