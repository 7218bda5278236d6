from .auth import BearerChallenge, RegistryAuth, parse_auth_challenge

__all__ = ["BearerChallenge", "RegistryAuth", "parse_auth_challenge"]
