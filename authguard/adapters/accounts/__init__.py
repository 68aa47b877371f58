"""Account store adapters used by the login/registration handlers."""
