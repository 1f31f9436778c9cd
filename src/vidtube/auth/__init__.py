"""Authentication and authorization.

Learn: One account model, one token scheme.
1. Passwords → bcrypt hashes (auth.password)
2. Access/refresh JWTs signed with two independent secrets (auth.jwt)
3. get_current_account gate for protected routes (auth.dependencies)

Refresh tokens are mirrored on the account row so they can be rotated and
revoked even though JWTs are otherwise stateless.
"""
