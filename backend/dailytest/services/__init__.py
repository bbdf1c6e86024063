"""
Services wrapping the database session: catalog, submission ledger and users.
"""
