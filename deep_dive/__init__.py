"""Deep Dive: identity resolution and profile-graph expansion for leads."""

__version__ = "0.1.0"
