"""Member portal: sign-up, sign-in, session restore, email verification and user statistics."""

__version__ = "1.0.0"
