"""auth/ -- Authentication core for TokenGate.

Credential hashing, signed token issuance and verification, revocation
tracking, account invariants and the register/login/refresh/logout
orchestrator (auth.service.AuthService).

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/; configuration arrives as a Settings
object passed to the from_settings() constructors.
"""
