"""
Authentication Package

This package handles the SSO side of the client: turning a NetID/password
into an identity token pair.

Modules:
- encoder: RSA credential encoding with the institutional public key
- identity: Identity session (credentials, token pair, device markers)
- login: Password + MFA login state machine

The authentication flow:
1. Client binds netid/password to an IdentitySession
2. LoginStateMachine probes whether MFA is required
3. If required, the caller completes the secure-phone challenge
4. The password login is submitted with encrypted credentials
5. The returned token pair replaces the session's tokens
"""

from .encoder import CredentialEncoder, get_default_encoder, load_public_key
from .identity import IdentitySession
from .login import LoginState, LoginStateMachine

__all__ = [
    "CredentialEncoder",
    "IdentitySession",
    "get_default_encoder",
    "LoginState",
    "LoginStateMachine",
    "load_public_key",
]
