"""Background workers: audit event consumer and its handlers."""
