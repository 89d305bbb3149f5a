"""Request generators: one function per command, returning (payload, command_type)."""
