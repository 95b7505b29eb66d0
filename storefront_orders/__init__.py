"""Server-side order creation for the storefront."""
