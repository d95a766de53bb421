"""PostgreSQL access: connection, DDL, batched statements and the store."""
