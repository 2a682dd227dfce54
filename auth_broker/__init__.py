"""OAuth2 broker in front of Google sign-in."""
