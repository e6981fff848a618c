"""Spotify Web API access: HTTP session, PKCE helpers and the client."""
