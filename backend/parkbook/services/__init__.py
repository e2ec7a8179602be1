"""Service layer: business operations over the repositories."""
