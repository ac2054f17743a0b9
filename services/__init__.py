"""Client services: configuration, reader, writer and the GraphitiClient facade."""
