"""Network clients: shared HTTP transport, index, personal stores and auth relay."""
