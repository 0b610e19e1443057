from fedauth.infrastructure.oauth.di import OAuthInfraProvider

__all__ = ["OAuthInfraProvider"]
