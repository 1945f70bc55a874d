"""Authentication: JWT tokens, password login, role checks."""
