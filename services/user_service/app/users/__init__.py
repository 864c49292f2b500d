"""User accounts: schemas and the users service."""
